import os
from app.celery_app import celery_app  # noqa: F401
import app.tasks.subscription_tasks  # noqa: F401

"""
File này dùng để khởi động Celery worker xử lý các job quét gói đăng ký.

Cách sử dụng:
    - Chạy worker: python celery_worker.py
    - Hoặc sử dụng lệnh Celery trực tiếp: celery -A celery_worker.celery_app worker --loglevel=info
"""

if __name__ == '__main__':
    # Một tiến trình là đủ: hai job chạy mỗi ngày một lần và tự bảo đảm không gửi trùng
    os.system('celery -A celery_worker.celery_app worker --loglevel=info --concurrency=1 --queues=default')
