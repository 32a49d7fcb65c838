import uuid
from typing import List, Optional, Tuple

from sqlalchemy import select, func, delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.notification import Notification
from app.models.user_notification import UserNotification, DeliveryStatus


class NotificationRepository:
    """
    Repository cho Notification và bản ghi giao UserNotification.
    """

    @staticmethod
    async def create(db: AsyncSession, notification: Notification) -> Notification:
        db.add(notification)
        await db.commit()
        await db.refresh(notification)
        return notification

    @staticmethod
    async def get_by_id(db: AsyncSession, notification_id: uuid.UUID) -> Optional[Notification]:
        result = await db.execute(select(Notification).where(Notification.id == notification_id))
        return result.scalars().first()

    @staticmethod
    async def get_all(db: AsyncSession, skip: int = 0, limit: int = 50) -> Tuple[List[Notification], int]:
        total = await db.scalar(select(func.count(Notification.id))) or 0
        result = await db.execute(
            select(Notification).order_by(Notification.created_at.desc()).offset(skip).limit(limit)
        )
        return result.scalars().all(), total

    @staticmethod
    async def delete(db: AsyncSession, notification: Notification) -> None:
        await db.execute(
            delete(UserNotification).where(UserNotification.notification_id == notification.id)
        )
        await db.delete(notification)
        await db.commit()

    @staticmethod
    async def add_deliveries(
        db: AsyncSession,
        notification_id: uuid.UUID,
        user_ids: List[uuid.UUID],
        whatsapp: bool = False
    ) -> List[UserNotification]:
        """Tạo một bản ghi PENDING cho mỗi người nhận (bỏ qua người đã có)."""
        existing = await db.execute(
            select(UserNotification.user_id).where(UserNotification.notification_id == notification_id)
        )
        already = set(existing.scalars().all())
        deliveries = [
            UserNotification(
                user_id=user_id,
                notification_id=notification_id,
                status=DeliveryStatus.PENDING.value,
                whatsapp_status=DeliveryStatus.PENDING.value if whatsapp else None,
            )
            for user_id in dict.fromkeys(user_ids)
            if user_id not in already
        ]
        db.add_all(deliveries)
        await db.commit()
        return deliveries

    @staticmethod
    async def list_pending(
        db: AsyncSession,
        notification_id: Optional[uuid.UUID] = None,
        whatsapp: bool = False
    ) -> List[UserNotification]:
        status_column = UserNotification.whatsapp_status if whatsapp else UserNotification.status
        query = (
            select(UserNotification)
            .options(selectinload(UserNotification.user), selectinload(UserNotification.notification))
            .where(status_column == DeliveryStatus.PENDING.value)
        )
        if notification_id is not None:
            query = query.where(UserNotification.notification_id == notification_id)
        result = await db.execute(query.order_by(UserNotification.created_at))
        return result.scalars().all()

    @staticmethod
    async def list_for_user(db: AsyncSession, user_id: uuid.UUID, skip: int = 0, limit: int = 50) -> List[UserNotification]:
        result = await db.execute(
            select(UserNotification)
            .options(selectinload(UserNotification.notification))
            .where(UserNotification.user_id == user_id)
            .order_by(UserNotification.created_at.desc())
            .offset(skip).limit(limit)
        )
        return result.scalars().all()

    @staticmethod
    async def get_delivery_for_user(
        db: AsyncSession,
        delivery_id: uuid.UUID,
        user_id: uuid.UUID
    ) -> Optional[UserNotification]:
        result = await db.execute(
            select(UserNotification)
            .options(selectinload(UserNotification.notification))
            .where(UserNotification.id == delivery_id, UserNotification.user_id == user_id)
        )
        return result.scalars().first()

    @staticmethod
    async def count_by_type_for_user(db: AsyncSession, user_id: uuid.UUID, notification_type: str) -> int:
        return await db.scalar(
            select(func.count(UserNotification.id))
            .join(Notification, Notification.id == UserNotification.notification_id)
            .where(UserNotification.user_id == user_id, Notification.type == notification_type)
        ) or 0
