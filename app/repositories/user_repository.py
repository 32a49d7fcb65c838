# app/repositories/user_repository.py
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, update, delete, func, or_, and_, exists
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User
from app.models.user_subscription import UserSubscription
from app.models.user_notification import UserNotification

logger = logging.getLogger(__name__)


class UserRepository:
    """Repository xử lý các thao tác CRUD cho đối tượng User."""

    @staticmethod
    async def create(db: AsyncSession, **fields: Any) -> User:
        """Tạo một người dùng mới."""
        db_user = User(**fields)
        db.add(db_user)
        await db.commit()
        await db.refresh(db_user)
        return db_user

    @staticmethod
    async def save(db: AsyncSession, db_user: User) -> User:
        """Commit các thay đổi đã gán trên đối tượng User."""
        await db.commit()
        await db.refresh(db_user)
        return db_user

    @staticmethod
    async def get_by_id(db: AsyncSession, user_id: uuid.UUID) -> Optional[User]:
        result = await db.execute(select(User).where(User.id == user_id))
        return result.scalars().first()

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> Optional[User]:
        """Email luôn được lưu chữ thường."""
        result = await db.execute(select(User).where(User.email == email.lower()))
        return result.scalars().first()

    @staticmethod
    async def get_by_whatsapp(db: AsyncSession, whatsapp: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.whatsapp == whatsapp))
        return result.scalars().first()

    @staticmethod
    async def get_by_mobile(db: AsyncSession, mobile: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.mobile == mobile))
        return result.scalars().first()

    @staticmethod
    async def get_by_ids(db: AsyncSession, user_ids: List[uuid.UUID]) -> List[User]:
        if not user_ids:
            return []
        result = await db.execute(select(User).where(User.id.in_(user_ids)))
        return result.scalars().all()

    @staticmethod
    async def list_users(
        db: AsyncSession,
        search: Optional[str] = None,
        is_blocked: Optional[bool] = None,
        has_active_plan: Optional[bool] = None,
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[User], int]:
        """
        Lấy danh sách người dùng có lọc và phân trang, mới nhất đứng đầu.

        Returns:
            (danh sách user, tổng số bản ghi khớp bộ lọc)
        """
        conditions = []
        if search:
            pattern = f"%{search}%"
            conditions.append(or_(
                User.full_name.ilike(pattern),
                User.email.ilike(pattern),
                User.mobile.ilike(pattern),
                User.whatsapp.ilike(pattern),
            ))
        if is_blocked is not None:
            conditions.append(User.is_blocked == is_blocked)
        if has_active_plan is not None:
            active_exists = exists().where(and_(
                UserSubscription.user_id == User.id,
                UserSubscription.is_active == True,  # noqa: E712
            ))
            conditions.append(active_exists if has_active_plan else ~active_exists)

        query = select(User).where(*conditions)
        total = await db.scalar(select(func.count()).select_from(query.subquery()))
        result = await db.execute(query.order_by(User.created_at.desc()).offset(skip).limit(limit))
        return result.scalars().all(), total or 0

    @staticmethod
    async def list_all_ids(db: AsyncSession) -> List[uuid.UUID]:
        result = await db.execute(select(User.id))
        return list(result.scalars().all())

    @staticmethod
    async def list_subscribed_ids(db: AsyncSession, now: datetime) -> List[uuid.UUID]:
        """ID các user đang có gói active và chưa hết hạn."""
        result = await db.execute(
            select(UserSubscription.user_id)
            .where(
                UserSubscription.is_active == True,  # noqa: E712
                UserSubscription.expiry_date > now,
            )
            .distinct()
        )
        return list(result.scalars().all())

    @staticmethod
    async def set_active_subscription(db: AsyncSession, user_id: uuid.UUID, subscription_id: Optional[uuid.UUID]) -> None:
        """Cập nhật con trỏ gói active. Chỉ flush, không commit."""
        await db.execute(
            update(User)
            .where(User.id == user_id)
            .values(active_subscription_id=subscription_id)
        )

    @staticmethod
    async def clear_active_subscription_if(db: AsyncSession, user_id: uuid.UUID, subscription_id: uuid.UUID) -> None:
        """Xóa con trỏ nếu nó đang trỏ tới đúng gói này. Chỉ flush, không commit."""
        await db.execute(
            update(User)
            .where(User.id == user_id, User.active_subscription_id == subscription_id)
            .values(active_subscription_id=None)
        )

    @staticmethod
    async def remove_firebase_tokens(db: AsyncSession, db_user: User, tokens: List[str]) -> None:
        if not tokens:
            return
        current = list(db_user.firebase_tokens or [])
        db_user.firebase_tokens = [t for t in current if t not in tokens]
        await db.commit()

    @staticmethod
    async def count_users(db: AsyncSession, *conditions) -> int:
        result = await db.scalar(select(func.count(User.id)).where(*conditions))
        return result or 0

    @staticmethod
    async def find_shared_devices(db: AsyncSession) -> Dict[str, List[User]]:
        """Các device_id đang được gắn với nhiều hơn một tài khoản."""
        shared = (
            select(User.device_id)
            .where(User.device_id.isnot(None))
            .group_by(User.device_id)
            .having(func.count(User.id) > 1)
        )
        result = await db.execute(select(User).where(User.device_id.in_(shared)).order_by(User.device_id))
        grouped: Dict[str, List[User]] = {}
        for user in result.scalars().all():
            grouped.setdefault(user.device_id, []).append(user)
        return grouped

    @staticmethod
    async def find_abandoned_bindings(db: AsyncSession, before: datetime) -> List[User]:
        """Tài khoản có thiết bị nhưng không đăng nhập từ trước `before` (hoặc chưa từng)."""
        result = await db.execute(
            select(User).where(
                User.device_id.isnot(None),
                or_(User.last_device_login.is_(None), User.last_device_login < before),
            )
        )
        return result.scalars().all()

    @staticmethod
    async def find_pending_device_changes(db: AsyncSession) -> List[User]:
        result = await db.execute(
            select(User)
            .where(User.device_change_requested == True)  # noqa: E712
            .order_by(User.device_change_requested_at)
        )
        return result.scalars().all()

    @staticmethod
    async def delete(db: AsyncSession, db_user: User) -> None:
        """
        Xóa người dùng cùng các gói đăng ký và bản ghi thông báo của họ.
        Con trỏ gói active được xóa trước để không vướng khóa ngoại vòng.
        """
        user_id = db_user.id
        await db.execute(update(User).where(User.id == user_id).values(active_subscription_id=None))
        await db.execute(delete(UserNotification).where(UserNotification.user_id == user_id))
        await db.execute(delete(UserSubscription).where(UserSubscription.user_id == user_id))
        await db.execute(delete(User).where(User.id == user_id))
        await db.commit()
        logger.info(f"Deleted user {user_id} with subscriptions and deliveries")
