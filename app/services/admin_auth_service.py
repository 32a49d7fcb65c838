import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.dto.admin_dto import AdminAuthResponse, AdminRead
from app.exceptions.base_exception import AuthException
from app.middlewares.auth_middleware import create_admin_token
from app.repositories.admin_repository import AdminRepository
from app.utils.security import verify_password

logger = logging.getLogger(__name__)


class AdminAuthService:
    """Đăng nhập cho tài khoản admin; token mang scope admin."""

    @staticmethod
    async def login(db: AsyncSession, email: str, password: str) -> AdminAuthResponse:
        admin = await AdminRepository.get_by_email(db, email)
        if admin is None or not verify_password(password, admin.hashed_password):
            raise AuthException("Invalid credentials", "INVALID_CREDENTIALS")
        if not admin.is_active:
            raise AuthException("Admin account is disabled", "ADMIN_DISABLED", status_code=403)

        token = await create_admin_token(admin)
        logger.info(f"Admin {admin.email} logged in")
        return AdminAuthResponse(access_token=token, admin=AdminRead.model_validate(admin))
