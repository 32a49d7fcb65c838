import uuid
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import select, update, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.plan import Plan
from app.models.user_subscription import UserSubscription


class SubscriptionRepository:
    """
    Repository cho UserSubscription.

    Các hàm dùng trong luồng kích hoạt / hết hạn chỉ flush, việc commit do service
    quyết định để gom nhiều bước vào cùng một transaction.
    """

    @staticmethod
    async def get_by_id(db: AsyncSession, subscription_id: uuid.UUID) -> Optional[UserSubscription]:
        result = await db.execute(
            select(UserSubscription)
            .options(selectinload(UserSubscription.plan))
            .where(UserSubscription.id == subscription_id)
        )
        return result.scalars().first()

    @staticmethod
    async def get_active_for_user(db: AsyncSession, user_id: uuid.UUID) -> Optional[UserSubscription]:
        result = await db.execute(
            select(UserSubscription)
            .options(selectinload(UserSubscription.plan))
            .where(
                UserSubscription.user_id == user_id,
                UserSubscription.is_active == True,  # noqa: E712
            )
        )
        return result.scalars().first()

    @staticmethod
    async def get_active_for_users(db: AsyncSession, user_ids: List[uuid.UUID]) -> Dict[uuid.UUID, UserSubscription]:
        """Gói active của nhiều user cùng lúc, theo user_id."""
        if not user_ids:
            return {}
        result = await db.execute(
            select(UserSubscription)
            .options(selectinload(UserSubscription.plan))
            .where(
                UserSubscription.user_id.in_(user_ids),
                UserSubscription.is_active == True,  # noqa: E712
            )
        )
        return {sub.user_id: sub for sub in result.scalars().all()}

    @staticmethod
    async def get_by_payment_id(db: AsyncSession, payment_id: str) -> Optional[UserSubscription]:
        result = await db.execute(select(UserSubscription).where(UserSubscription.payment_id == payment_id))
        return result.scalars().first()

    @staticmethod
    async def list_for_user(db: AsyncSession, user_id: uuid.UUID) -> List[UserSubscription]:
        result = await db.execute(
            select(UserSubscription)
            .options(selectinload(UserSubscription.plan))
            .where(UserSubscription.user_id == user_id)
            .order_by(UserSubscription.start_date.desc())
        )
        return result.scalars().all()

    @staticmethod
    async def deactivate_active_for_user(db: AsyncSession, user_id: uuid.UUID) -> int:
        """Tắt mọi gói đang active của user. Trả về số dòng bị ảnh hưởng."""
        result = await db.execute(
            update(UserSubscription)
            .where(
                UserSubscription.user_id == user_id,
                UserSubscription.is_active == True,  # noqa: E712
            )
            .values(is_active=False)
        )
        return result.rowcount

    @staticmethod
    async def add(db: AsyncSession, subscription: UserSubscription) -> UserSubscription:
        db.add(subscription)
        await db.flush()
        return subscription

    @staticmethod
    async def list_expired_candidates(db: AsyncSession, now: datetime) -> List[UserSubscription]:
        result = await db.execute(
            select(UserSubscription)
            .options(selectinload(UserSubscription.plan))
            .where(
                UserSubscription.is_active == True,  # noqa: E712
                UserSubscription.expiry_date < now,
                UserSubscription.expired_notification_sent == False,  # noqa: E712
            )
            .order_by(UserSubscription.expiry_date)
        )
        return result.scalars().all()

    @staticmethod
    async def mark_expired_if_pending(db: AsyncSession, subscription_id: uuid.UUID) -> bool:
        """
        Đánh dấu hết hạn có điều kiện: chỉ dòng còn is_active = True và
        expired_notification_sent = False mới được cập nhật, nên dòng đã bị gói mới thay thế
        không bị giành nữa. Trả về True nếu lần gọi này là lần giành được dòng đó.
        """
        result = await db.execute(
            update(UserSubscription)
            .where(
                UserSubscription.id == subscription_id,
                UserSubscription.is_active == True,  # noqa: E712
                UserSubscription.expired_notification_sent == False,  # noqa: E712
            )
            .values(is_active=False, expired_notification_sent=True)
        )
        return result.rowcount == 1

    @staticmethod
    async def list_expiring(
        db: AsyncSession,
        now: datetime,
        until: datetime,
        not_reminded_only: bool = False
    ) -> List[UserSubscription]:
        query = (
            select(UserSubscription)
            .options(selectinload(UserSubscription.plan))
            .where(
                UserSubscription.is_active == True,  # noqa: E712
                UserSubscription.expiry_date >= now,
                UserSubscription.expiry_date <= until,
            )
        )
        if not_reminded_only:
            query = query.where(UserSubscription.reminder_sent_at.is_(None))
        result = await db.execute(query.order_by(UserSubscription.expiry_date))
        return result.scalars().all()

    @staticmethod
    async def count_active(db: AsyncSession, now: Optional[datetime] = None) -> int:
        conditions = [UserSubscription.is_active == True]  # noqa: E712
        if now is not None:
            conditions.append(UserSubscription.expiry_date > now)
        return await db.scalar(select(func.count(UserSubscription.id)).where(*conditions)) or 0

    @staticmethod
    async def count_expired(db: AsyncSession, now: datetime) -> int:
        return await db.scalar(
            select(func.count(UserSubscription.id)).where(
                or_(
                    UserSubscription.is_active == False,  # noqa: E712
                    UserSubscription.expiry_date <= now,
                )
            )
        ) or 0

    @staticmethod
    async def count_active_per_plan(db: AsyncSession) -> Dict[str, int]:
        result = await db.execute(
            select(Plan.code, func.count(UserSubscription.id))
            .select_from(UserSubscription)
            .join(Plan, Plan.id == UserSubscription.plan_id)
            .where(UserSubscription.is_active == True)  # noqa: E712
            .group_by(Plan.code)
        )
        return {code: count for code, count in result.all()}

    @staticmethod
    async def reset_usage(db: AsyncSession, subscription: UserSubscription, reset_at: datetime) -> None:
        subscription.usage_count = 0
        subscription.usage_reset_at = reset_at
        await db.flush()

    @staticmethod
    async def increment_usage(db: AsyncSession, subscription_id: uuid.UUID, daily_limit: int) -> bool:
        """Tăng bộ đếm nếu còn dưới hạn mức, trong một câu UPDATE. Trả về False khi đã chạm hạn mức."""
        result = await db.execute(
            update(UserSubscription)
            .where(
                UserSubscription.id == subscription_id,
                UserSubscription.usage_count < daily_limit,
            )
            .values(usage_count=UserSubscription.usage_count + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    async def mark_reminded(db: AsyncSession, subscription_id: uuid.UUID, reminded_at: datetime) -> None:
        await db.execute(
            update(UserSubscription)
            .where(UserSubscription.id == subscription_id)
            .values(reminder_sent_at=reminded_at)
        )

    @staticmethod
    async def sum_paid_earnings(db: AsyncSession, since: Optional[datetime] = None) -> int:
        """Tổng discounted_price của các gói có thanh toán, tính từ `since` nếu có."""
        query = (
            select(func.coalesce(func.sum(Plan.discounted_price), 0))
            .select_from(UserSubscription)
            .join(Plan, Plan.id == UserSubscription.plan_id)
            .where(UserSubscription.payment_id.isnot(None))
        )
        if since is not None:
            query = query.where(UserSubscription.created_at >= since)
        return int(await db.scalar(query) or 0)

    @staticmethod
    async def plan_purchase_stats(db: AsyncSession, paid_only: bool = False) -> List[Dict]:
        """Số lượt mua và doanh thu theo gói, nhiều lượt mua nhất đứng đầu."""
        purchase_count = func.count(UserSubscription.id).label("purchase_count")
        query = (
            select(
                Plan.id,
                Plan.title,
                Plan.code,
                Plan.duration_in_months,
                Plan.discounted_price,
                purchase_count,
                func.coalesce(func.sum(Plan.discounted_price), 0).label("total_amount"),
            )
            .select_from(UserSubscription)
            .join(Plan, Plan.id == UserSubscription.plan_id)
            .group_by(Plan.id, Plan.title, Plan.code, Plan.duration_in_months, Plan.discounted_price)
            .order_by(purchase_count.desc())
        )
        if paid_only:
            query = query.where(UserSubscription.payment_id.isnot(None))
        result = await db.execute(query)
        return [
            {
                "plan_id": row.id,
                "plan_title": row.title,
                "plan_code": row.code,
                "duration_in_months": row.duration_in_months,
                "price": row.discounted_price,
                "purchase_count": row.purchase_count,
                "total_amount": int(row.total_amount),
            }
            for row in result.all()
        ]
