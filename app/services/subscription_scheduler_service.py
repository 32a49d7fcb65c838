import logging
from datetime import datetime, timedelta
from typing import Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.configs.settings import settings
from app.models.notification import NotificationType
from app.repositories.subscription_repository import SubscriptionRepository
from app.repositories.user_repository import UserRepository
from app.services.notification_service import NotificationService
from app.utils.time import get_utc_now

logger = logging.getLogger(__name__)

EXPIRED_TITLE = "Subscription Expired"
EXPIRING_TITLE = "Subscription Expiring Soon"


class SubscriptionSchedulerService:
    """
    Hai job quét định kỳ trên bảng user_subscriptions: hết hạn và nhắc sắp hết hạn.

    Các dòng được xử lý tuần tự và độc lập; lỗi ở một dòng được ghi log và bỏ qua,
    không chặn các dòng sau và không thử lại trong cùng lượt chạy.
    """

    @staticmethod
    async def run_expiry_sweep(db: AsyncSession, now: Optional[datetime] = None) -> Dict[str, int]:
        """
        Tắt các gói đã quá hạn, xóa con trỏ gói active trên user và gửi thông báo hết hạn.

        Mỗi dòng chỉ được "giành" một lần nhờ UPDATE có điều kiện (is_active = True,
        expired_notification_sent = False), nên chạy lại hay chạy chồng đều không gửi trùng,
        và dòng vừa bị một lần kích hoạt mới thay thế sẽ bị bỏ qua.
        """
        now = now or get_utc_now()
        candidates = await SubscriptionRepository.list_expired_candidates(db, now)
        rows = [
            (sub.id, sub.user_id, sub.plan.title if sub.plan else "subscription")
            for sub in candidates
        ]
        stats = {"candidates": len(rows), "expired": 0, "skipped": 0, "failed": 0}

        for subscription_id, user_id, plan_title in rows:
            try:
                claimed = await SubscriptionRepository.mark_expired_if_pending(db, subscription_id)
                if not claimed:
                    await db.rollback()
                    stats["skipped"] += 1
                    continue
                await UserRepository.clear_active_subscription_if(db, user_id, subscription_id)
                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                stats["failed"] += 1
                logger.error(f"Failed to expire subscription {subscription_id}: {e}", exc_info=True)
                continue

            stats["expired"] += 1
            logger.info(f"Expired subscription {subscription_id} for user {user_id}")
            await NotificationService.notify_user_safely(
                db,
                user_id,
                EXPIRED_TITLE,
                f"Your {plan_title} subscription has expired",
                NotificationType.SUBSCRIPTION_EXPIRED,
            )

        logger.info(f"Expiry sweep finished: {stats}")
        return stats

    @staticmethod
    async def run_reminder_sweep(
        db: AsyncSession,
        now: Optional[datetime] = None,
        window_days: Optional[int] = None,
        repeat_daily: Optional[bool] = None
    ) -> Dict[str, int]:
        """
        Nhắc các gói active sẽ hết hạn trong [now, now + window_days].

        repeat_daily=True (mặc định theo REMINDER_REPEAT_DAILY): nhắc lại ở mỗi lượt chạy
        trong cửa sổ. False: mỗi gói chỉ được nhắc một lần.
        """
        now = now or get_utc_now()
        window_days = settings.REMINDER_WINDOW_DAYS if window_days is None else window_days
        repeat_daily = settings.REMINDER_REPEAT_DAILY if repeat_daily is None else repeat_daily

        candidates = await SubscriptionRepository.list_expiring(
            db, now, now + timedelta(days=window_days), not_reminded_only=not repeat_daily
        )
        rows = [
            (sub.id, sub.user_id, sub.plan.title if sub.plan else "subscription", sub.expiry_date)
            for sub in candidates
        ]
        stats = {"candidates": len(rows), "reminded": 0, "failed": 0}

        for subscription_id, user_id, plan_title, expiry_date in rows:
            notified = await NotificationService.notify_user_safely(
                db,
                user_id,
                EXPIRING_TITLE,
                f"Your {plan_title} plan expires on {expiry_date.strftime('%a %b %d %Y')}",
                NotificationType.SUBSCRIPTION_EXPIRING,
            )
            if not notified:
                stats["failed"] += 1
                continue
            try:
                await SubscriptionRepository.mark_reminded(db, subscription_id, now)
                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error(f"Failed to record reminder for subscription {subscription_id}: {e}", exc_info=True)
            stats["reminded"] += 1

        logger.info(f"Reminder sweep finished: {stats}")
        return stats
