from typing import List, Optional
from pydantic_settings import BaseSettings
from pathlib import Path

# Xác định đường dẫn đến thư mục gốc của dự án
# Điều này đảm bảo file .env luôn được tìm thấy, bất kể bạn chạy ứng dụng từ đâu
BASE_DIR = Path(__file__).resolve().parent.parent.parent

class Settings(BaseSettings):
    # Application settings
    APP_NAME: str = "Magic Formula Backend"
    API_V1_PREFIX: str = "/api/v1"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Celery settings
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/0"
    CELERY_TASK_ALWAYS_EAGER: bool = False
    SCHEDULER_TIMEZONE: str = "Asia/Kolkata"

    # Security settings
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7  # 7 days
    ADMIN_TOKEN_EXPIRE_MINUTES: int = 60 * 24  # 1 day

    # Database settings
    DATABASE_URL: str

    # CORS settings
    CORS_ORIGINS: List[str] = ["*"]

    # Razorpay (payment gateway)
    RAZORPAY_KEY_ID: Optional[str] = None
    RAZORPAY_KEY_SECRET: Optional[str] = None
    PAYMENT_CURRENCY: str = "INR"
    PENALTY_AMOUNT: int = 500  # Đơn vị tiền chính (rupee), nhân 100 khi tạo order

    # WATI (WhatsApp) settings
    WATI_BASE_URL: Optional[str] = None
    WATI_ACCESS_TOKEN: Optional[str] = None
    DEFAULT_COUNTRY_CODE: str = "91"
    WHATSAPP_OTP_TEMPLATE: str = "magic_formula_otp_v3"
    WHATSAPP_NOTIFICATION_TEMPLATE: str = "magic_formula_notification_v1"

    # Firebase (push) settings
    FIREBASE_CREDENTIALS_PATH: Optional[str] = None

    # Timeout cho mọi lời gọi tới push/WhatsApp provider (giây)
    PROVIDER_TIMEOUT_SECONDS: float = 10.0

    # OTP settings
    OTP_LENGTH: int = 6
    OTP_EXPIRY_MINUTES: int = 5
    OTP_RESEND_SECONDS: int = 30
    OTP_MAX_ATTEMPTS: int = 5

    # Subscription jobs
    REMINDER_WINDOW_DAYS: int = 3
    # True: nhắc lại mỗi ngày trong cửa sổ nhắc; False: chỉ nhắc một lần cho mỗi gói
    REMINDER_REPEAT_DAILY: bool = True
    DAILY_USAGE_LIMIT: int = 50

    # Presence (live users) settings: "none" hoặc "redis"
    PRESENCE_BACKEND: str = "none"
    REDIS_URL: str = "redis://localhost:6379/1"

    class Config:
        env_file = BASE_DIR / ".env"
        env_file_encoding = 'utf-8'
        case_sensitive = True

settings = Settings()
