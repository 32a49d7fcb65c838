import os
from app.celery_app import celery_app  # noqa: F401

"""
File này dùng để khởi động Celery beat scheduler.
Lịch chạy (expire_subscriptions 01:00, send_expiry_reminders 10:00) nằm trong app.celery_app.

Cách sử dụng:
    - Chạy beat scheduler: python celery_beat.py
    - Hoặc sử dụng lệnh Celery trực tiếp: celery -A celery_beat.celery_app beat --loglevel=info
"""

if __name__ == '__main__':
    # Chỉ chạy một beat duy nhất, nếu không mỗi job sẽ được lên lịch nhiều lần
    os.system('celery -A celery_beat.celery_app beat --loglevel=info')
