import logging
import uuid
from typing import List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from app.dto.notification_dto import DeliveryReport, NotificationCreate, NotificationUpdate
from app.exceptions.base_exception import NotFoundException, ValidationException
from app.models.notification import Notification, NotificationStatus, NotificationType
from app.models.user_notification import DeliveryStatus, UserNotification
from app.repositories.notification_repository import NotificationRepository
from app.repositories.user_repository import UserRepository
from app.services.push_service import PushService
from app.services.whatsapp_service import WatiService
from app.utils.time import get_utc_now

logger = logging.getLogger(__name__)

TARGET_ALL = "ALL"
TARGET_SUBSCRIBED = "SUBSCRIBED"
TARGET_CUSTOM = "CUSTOM"


class NotificationService:
    """
    Fan-out thông báo tới từng người nhận và giao qua push / WhatsApp.

    Lỗi giao hàng không bao giờ raise ra ngoài: bản ghi chỉ chuyển sang FAILED.
    """

    # ---- CRUD (admin) ----

    @staticmethod
    async def create_notification(db: AsyncSession, data: NotificationCreate, admin_id: Optional[uuid.UUID] = None) -> Notification:
        notification = Notification(
            title=data.title,
            message=data.message,
            type=data.type.value,
            status=NotificationStatus.DRAFT.value,
            created_by=admin_id,
        )
        return await NotificationRepository.create(db, notification)

    @staticmethod
    async def get_notification(db: AsyncSession, notification_id: uuid.UUID) -> Notification:
        notification = await NotificationRepository.get_by_id(db, notification_id)
        if not notification:
            raise NotFoundException("Notification not found", "NOTIFICATION_NOT_FOUND")
        return notification

    @staticmethod
    async def list_notifications(db: AsyncSession, skip: int = 0, limit: int = 50) -> Tuple[List[Notification], int]:
        return await NotificationRepository.get_all(db, skip, limit)

    @staticmethod
    async def update_notification(db: AsyncSession, notification_id: uuid.UUID, data: NotificationUpdate) -> Notification:
        notification = await NotificationService.get_notification(db, notification_id)
        update_data = data.model_dump(exclude_unset=True)
        if "type" in update_data and update_data["type"] is not None:
            update_data["type"] = update_data["type"].value
        for field, value in update_data.items():
            if value is not None:
                setattr(notification, field, value)
        await db.commit()
        await db.refresh(notification)
        return notification

    @staticmethod
    async def delete_notification(db: AsyncSession, notification_id: uuid.UUID) -> None:
        notification = await NotificationService.get_notification(db, notification_id)
        await NotificationRepository.delete(db, notification)

    # ---- Fan-out ----

    @staticmethod
    async def dispatch(
        db: AsyncSession,
        notification: Notification,
        recipient_ids: List[uuid.UUID],
        whatsapp: bool = False
    ) -> List[UserNotification]:
        """Tạo một UserNotification PENDING cho mỗi người nhận."""
        deliveries = await NotificationRepository.add_deliveries(db, notification.id, recipient_ids, whatsapp=whatsapp)
        logger.info(f"Notification {notification.id} fanned out to {len(deliveries)} recipients")
        return deliveries

    @staticmethod
    async def resolve_recipients(db: AsyncSession, target: str, user_ids: Optional[List[uuid.UUID]] = None) -> List[uuid.UUID]:
        if target == TARGET_ALL:
            return await UserRepository.list_all_ids(db)
        if target == TARGET_SUBSCRIBED:
            return await UserRepository.list_subscribed_ids(db, get_utc_now())
        if target == TARGET_CUSTOM:
            users = await UserRepository.get_by_ids(db, user_ids or [])
            return [user.id for user in users]
        raise ValidationException(f"Unknown target '{target}'")

    @staticmethod
    async def send_notification(
        db: AsyncSession,
        notification_id: uuid.UUID,
        target: str,
        user_ids: Optional[List[uuid.UUID]] = None,
        send_whatsapp: bool = False
    ) -> DeliveryReport:
        """Admin gửi một thông báo: fan-out theo target rồi chạy lượt giao push (và WhatsApp nếu chọn)."""
        notification = await NotificationService.get_notification(db, notification_id)
        recipients = await NotificationService.resolve_recipients(db, target, user_ids)
        if not recipients:
            raise ValidationException("No recipients matched the selected target")

        await NotificationService.dispatch(db, notification, recipients, whatsapp=send_whatsapp)
        notification.status = NotificationStatus.SENT.value
        await db.commit()

        report = await NotificationService.deliver_pending_push(db, notification.id)
        if send_whatsapp:
            await NotificationService.deliver_pending_whatsapp(db, notification.id)
        return report

    @staticmethod
    async def create_system_notification(
        db: AsyncSession,
        user_id: uuid.UUID,
        title: str,
        message: str,
        notification_type: NotificationType
    ) -> Notification:
        """
        Thông báo do hệ thống sinh ra (kích hoạt / sắp hết hạn / hết hạn gói):
        tạo ở trạng thái SENT, fan-out cho một người và giao push ngay.
        """
        notification = Notification(
            title=title,
            message=message,
            type=notification_type.value,
            status=NotificationStatus.SENT.value,
        )
        await NotificationRepository.create(db, notification)
        await NotificationService.dispatch(db, notification, [user_id])
        await NotificationService.deliver_pending_push(db, notification.id)
        return notification

    @staticmethod
    async def notify_user_safely(
        db: AsyncSession,
        user_id: uuid.UUID,
        title: str,
        message: str,
        notification_type: NotificationType
    ) -> bool:
        """
        Best-effort: lỗi khi tạo hoặc giao thông báo chỉ được ghi log, không lan ra
        thao tác gói / tài khoản đã commit trước đó.
        """
        try:
            await NotificationService.create_system_notification(db, user_id, title, message, notification_type)
            return True
        except Exception as e:
            logger.error(f"Failed to notify user {user_id} ({notification_type.value}): {e}", exc_info=True)
            await db.rollback()
            return False

    # ---- Delivery passes ----

    @staticmethod
    async def _deliver_push(db: AsyncSession, delivery: UserNotification) -> bool:
        user = delivery.user
        notification = delivery.notification
        tokens = list(user.firebase_tokens or []) if user else []

        sent_any = False
        invalid_tokens = []
        for token in tokens:
            result = await PushService.send(token, notification.title, notification.message)
            if result.success:
                sent_any = True
            elif result.is_invalid_token:
                invalid_tokens.append(token)

        if invalid_tokens:
            user.firebase_tokens = [t for t in tokens if t not in invalid_tokens]
            logger.info(f"Removed {len(invalid_tokens)} invalid push tokens from user {user.id}")

        delivery.status = DeliveryStatus.SENT.value if sent_any else DeliveryStatus.FAILED.value
        if sent_any:
            delivery.sent_at = get_utc_now()
        elif not tokens:
            logger.info(f"User {delivery.user_id} has no push tokens, delivery {delivery.id} failed")
        await db.commit()
        return sent_any

    @staticmethod
    async def deliver_pending_push(db: AsyncSession, notification_id: Optional[uuid.UUID] = None) -> DeliveryReport:
        """Duyệt các bản ghi PENDING và gửi push tới mọi token của người nhận."""
        report = DeliveryReport()
        pending = await NotificationRepository.list_pending(db, notification_id)
        for delivery in pending:
            report.processed += 1
            if await NotificationService._deliver_push(db, delivery):
                report.sent += 1
            else:
                report.failed += 1
        if report.processed:
            logger.info(f"Push pass: {report.sent} sent, {report.failed} failed")
        return report

    @staticmethod
    async def deliver_pending_whatsapp(db: AsyncSession, notification_id: Optional[uuid.UUID] = None) -> DeliveryReport:
        """Gửi template thông báo tới số WhatsApp của người nhận, nếu thiếu thì dùng số mobile."""
        report = DeliveryReport()
        pending = await NotificationRepository.list_pending(db, notification_id, whatsapp=True)
        for delivery in pending:
            report.processed += 1
            user = delivery.user
            phone = (user.whatsapp or user.mobile) if user else None
            success = False
            if phone:
                result = await WatiService.send_notification_message(
                    phone, delivery.notification.title, delivery.notification.message
                )
                success = bool(result.get("success"))
            delivery.whatsapp_status = DeliveryStatus.SENT.value if success else DeliveryStatus.FAILED.value
            await db.commit()
            if success:
                report.sent += 1
            else:
                report.failed += 1
        if report.processed:
            logger.info(f"WhatsApp pass: {report.sent} sent, {report.failed} failed")
        return report

    # ---- End-user inbox ----

    @staticmethod
    async def list_for_user(db: AsyncSession, user_id: uuid.UUID, skip: int = 0, limit: int = 50) -> List[UserNotification]:
        return await NotificationRepository.list_for_user(db, user_id, skip, limit)

    @staticmethod
    async def mark_read(db: AsyncSession, user_id: uuid.UUID, delivery_id: uuid.UUID) -> UserNotification:
        delivery = await NotificationRepository.get_delivery_for_user(db, delivery_id, user_id)
        if not delivery:
            raise NotFoundException("Notification not found", "NOTIFICATION_NOT_FOUND")
        if delivery.read_at is None:
            delivery.read_at = get_utc_now()
            await db.commit()
        return delivery
