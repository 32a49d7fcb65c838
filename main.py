import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.configs.settings import settings
from app.database.database import create_tables
# Ensure all models are imported so SQLAlchemy metadata is populated
import app.models  # noqa: F401
from app.exceptions.base_exception import AppException
from app.middlewares.error_handler import ErrorHandlerMiddleware, app_exception_handler

# Import tất cả các controller
from app.controllers import (
    auth_router,
    admin_auth_router,
    user_router,
    subscription_router,
    admin_router,
    plan_router,
    notification_router,
)

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    description="API cho ứng dụng di động có gói đăng ký, gắn thiết bị và thông báo",
    version="1.0.0",
    debug=settings.DEBUG,
)

# Cấu hình CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Middleware xử lý lỗi
app.add_middleware(ErrorHandlerMiddleware)
app.add_exception_handler(AppException, app_exception_handler)

# --- Đăng ký router ---
prefix = settings.API_V1_PREFIX
app.include_router(auth_router, prefix=f"{prefix}/auth", tags=["Auth"])
app.include_router(user_router, prefix=f"{prefix}/users", tags=["Users"])
app.include_router(subscription_router, prefix=f"{prefix}/subscriptions", tags=["Subscriptions"])

# Các router của admin
app.include_router(admin_auth_router, prefix=f"{prefix}/admin/auth", tags=["Admin Auth"])
app.include_router(admin_router, prefix=f"{prefix}/admin", tags=["Admin"])
app.include_router(plan_router, prefix=f"{prefix}/admin/plans", tags=["Admin Plans"])
app.include_router(notification_router, prefix=f"{prefix}/admin/notifications", tags=["Admin Notifications"])


@app.on_event("startup")
async def startup_event():
    """Tạo bảng nếu chưa tồn tại khi khởi động ứng dụng."""
    await create_tables()
    logger.info(f"{settings.APP_NAME} started")


@app.get("/")
async def root():
    return {"message": f"Welcome to {settings.APP_NAME}"}


@app.get("/health")
async def health_check():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
