from celery import Celery
from celery.schedules import crontab

from app.configs.settings import settings

# Cấu hình Celery
celery_app = Celery(
    'magic_formula',
    broker=settings.CELERY_BROKER_URL,  # Sử dụng Redis làm message broker
    backend=settings.CELERY_RESULT_BACKEND,  # Sử dụng Redis làm result backend
    include=['app.tasks.subscription_tasks']  # Import các module chứa task
)

# Cấu hình tùy chọn cho Celery
celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone=settings.SCHEDULER_TIMEZONE,
    enable_utc=False,
    task_track_started=True,
    worker_hijack_root_logger=False,
    task_time_limit=1800,  # 30 phút timeout cho mỗi task
    broker_connection_retry_on_startup=True,
    task_default_queue='default',
)

# Cho phép gọi task đồng bộ khi chạy trong chế độ debug/development
celery_app.conf.task_always_eager = settings.CELERY_TASK_ALWAYS_EAGER

# Hai job hằng ngày theo giờ địa phương (SCHEDULER_TIMEZONE)
celery_app.conf.beat_schedule = {
    'expire-subscriptions-daily-at-1am': {
        'task': 'expire_subscriptions',
        'schedule': crontab(hour=1, minute=0),
        'options': {'queue': 'default'},
    },
    'send-expiry-reminders-daily-at-10am': {
        'task': 'send_expiry_reminders',
        'schedule': crontab(hour=10, minute=0),
        'options': {'queue': 'default'},
    },
}
# celery -A app.celery_app beat --loglevel=info
