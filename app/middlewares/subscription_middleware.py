from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.database import get_db
from app.models.user import User
from app.models.user_subscription import UserSubscription
from app.middlewares.auth_middleware import get_current_active_user
from app.services.subscription_service import SubscriptionService


async def check_active_subscription(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
) -> UserSubscription:
    """
    Dependency yêu cầu người dùng có gói đang active và chưa hết hạn.
    """
    return await SubscriptionService.require_active_subscription(db, current_user.id)


def check_usage_limit(daily_limit: int = None):
    """
    Dependency trừ một lượt sử dụng trong ngày của gói hiện tại, vượt hạn mức trả 429.
    """
    async def dependency(
        subscription: UserSubscription = Depends(check_active_subscription),
        db: AsyncSession = Depends(get_db)
    ):
        return await SubscriptionService.consume_usage(db, subscription, daily_limit)

    return dependency
