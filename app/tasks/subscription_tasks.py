"""
subscription_tasks.py
Hai task định kỳ của vòng đời gói đăng ký:
- expire_subscriptions: 01:00 hằng ngày, tắt các gói đã quá hạn và báo cho người dùng
- send_expiry_reminders: 10:00 hằng ngày, nhắc các gói sắp hết hạn
Giờ chạy theo SCHEDULER_TIMEZONE (cấu hình trong celery_app).
"""

import asyncio
from typing import Dict

from celery.utils.log import get_task_logger

from app.celery_app import celery_app
from app.database.database import async_session
from app.services.subscription_scheduler_service import SubscriptionSchedulerService

logger = get_task_logger(__name__)


def _get_loop() -> asyncio.AbstractEventLoop:
    """Đảm bảo luôn có event-loop cho worker Celery."""
    try:
        return asyncio.get_event_loop()
    except RuntimeError:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        return loop


@celery_app.task(name="expire_subscriptions")
def expire_subscriptions() -> Dict[str, int]:
    """Celery task: chạy một lượt quét hết hạn, trả về thống kê của lượt chạy."""
    loop = _get_loop()
    try:
        return loop.run_until_complete(_expire_subscriptions())
    except Exception as e:
        logger.error(f"Error in expire_subscriptions: {e}", exc_info=True)
        return {"error": str(e)}


async def _expire_subscriptions() -> Dict[str, int]:
    logger.info("Starting subscription expiry sweep")
    async with async_session() as db:
        stats = await SubscriptionSchedulerService.run_expiry_sweep(db)
    logger.info(f"Expiry sweep finished: {stats}")
    return stats


@celery_app.task(name="send_expiry_reminders")
def send_expiry_reminders() -> Dict[str, int]:
    """Celery task: nhắc các gói sẽ hết hạn trong REMINDER_WINDOW_DAYS ngày tới."""
    loop = _get_loop()
    try:
        return loop.run_until_complete(_send_expiry_reminders())
    except Exception as e:
        logger.error(f"Error in send_expiry_reminders: {e}", exc_info=True)
        return {"error": str(e)}


async def _send_expiry_reminders() -> Dict[str, int]:
    logger.info("Starting subscription expiry reminder sweep")
    async with async_session() as db:
        stats = await SubscriptionSchedulerService.run_reminder_sweep(db)
    logger.info(f"Reminder sweep finished: {stats}")
    return stats
