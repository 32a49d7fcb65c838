import uuid
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.database import get_db
from app.dto.notification_dto import UserNotificationRead
from app.dto.response import ResponseModel
from app.dto.user_dto import PushTokenRequest, UserProfileUpdate, UserRead
from app.middlewares.auth_middleware import get_current_active_user, get_current_user
from app.models.user import User
from app.services.notification_service import NotificationService
from app.services.user_service import UserService

router = APIRouter()


@router.get("/me", response_model=UserRead)
async def read_users_me(current_user: User = Depends(get_current_user)):
    """Lấy thông tin của người dùng hiện tại."""
    return current_user


@router.put("/me", response_model=UserRead)
async def update_users_me(
    data: UserProfileUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    return await UserService.update_profile(db, current_user, data)


@router.post("/me/push-tokens", response_model=UserRead)
async def add_push_token(
    data: PushTokenRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Đăng ký FCM token của thiết bị để nhận thông báo đẩy."""
    return await UserService.add_push_token(db, current_user, data.token)


@router.delete("/me/push-tokens", response_model=UserRead)
async def remove_push_token(
    data: PushTokenRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await UserService.remove_push_token(db, current_user, data.token)


@router.post("/me/device-change-request")
async def request_device_change(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Xin đổi thiết bị. Tài khoản bị khóa cho tới khi admin duyệt yêu cầu.
    """
    user = await UserService.request_device_change(db, current_user)
    return ResponseModel.success(
        data=UserRead.model_validate(user),
        message="Device change request submitted. Your account is blocked until an admin approves it."
    )


@router.get("/me/notifications", response_model=List[UserNotificationRead])
async def list_my_notifications(
    skip: int = 0,
    limit: int = 50,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await NotificationService.list_for_user(db, current_user.id, skip, limit)


@router.post("/me/notifications/{delivery_id}/read", response_model=UserNotificationRead)
async def mark_notification_read(
    delivery_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return await NotificationService.mark_read(db, current_user.id, delivery_id)
