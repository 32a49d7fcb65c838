from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import timedelta
from typing import Optional
import uuid

from app.database.database import get_db
from app.models.admin import Admin
from app.models.user import User
from app.configs.settings import settings
from app.repositories.admin_repository import AdminRepository
from app.repositories.user_repository import UserRepository
from app.services.device_binding_service import DeviceBindingService
from app.utils.time import get_utc_now

security = HTTPBearer(auto_error=False)

USER_SCOPE = "user"
ADMIN_SCOPE = "admin"


async def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Tạo JWT access token."""
    to_encode = data.copy()

    if expires_delta:
        expire = get_utc_now() + expires_delta
    else:
        expire = get_utc_now() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


async def create_user_token(user: User) -> str:
    return await create_access_token({"sub": str(user.id), "scope": USER_SCOPE})


async def create_admin_token(admin: Admin) -> str:
    return await create_access_token(
        {"sub": str(admin.id), "adminId": str(admin.id), "scope": ADMIN_SCOPE},
        expires_delta=timedelta(minutes=settings.ADMIN_TOKEN_EXPIRE_MINUTES),
    )


def _credentials_exception(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _decode_subject(credentials: Optional[HTTPAuthorizationCredentials], expected_scope: str) -> uuid.UUID:
    if not credentials or not credentials.credentials:
        raise _credentials_exception("Missing authentication token")

    try:
        payload = jwt.decode(credentials.credentials, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        subject = payload.get("sub")
        if subject is None or payload.get("scope") != expected_scope:
            raise _credentials_exception()
        return uuid.UUID(subject)
    except (JWTError, ValueError):
        raise _credentials_exception()


async def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
                           db: AsyncSession = Depends(get_db)) -> User:
    """Xác thực và lấy thông tin người dùng hiện tại từ token."""
    user_id = _decode_subject(credentials, USER_SCOPE)
    user = await UserRepository.get_by_id(db, user_id)
    if user is None:
        raise _credentials_exception()
    return user


async def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    """Như get_current_user nhưng từ chối tài khoản đang bị khóa."""
    DeviceBindingService.ensure_not_blocked(current_user)
    return current_user


async def get_current_admin(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
                            db: AsyncSession = Depends(get_db)) -> Admin:
    """Xác thực admin từ token có scope admin."""
    admin_id = _decode_subject(credentials, ADMIN_SCOPE)
    admin = await AdminRepository.get_by_id(db, admin_id)
    if admin is None or not admin.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return admin
