import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.database import get_db
from app.dto.notification_dto import (
    DeliveryReport,
    NotificationCreate,
    NotificationRead,
    NotificationUpdate,
    SendNotificationRequest,
)
from app.dto.response import ResponseModel
from app.middlewares.auth_middleware import get_current_admin
from app.models.admin import Admin
from app.services.notification_service import NotificationService

router = APIRouter()


@router.get("")
async def get_all_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin)
):
    items, total = await NotificationService.list_notifications(db, skip=(page - 1) * limit, limit=limit)
    return ResponseModel.paginated(
        [NotificationRead.model_validate(n) for n in items], total, page, limit, message="Notifications fetched"
    )


@router.post("", response_model=NotificationRead, status_code=status.HTTP_201_CREATED)
async def create_notification(
    data: NotificationCreate,
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin)
):
    """[ADMIN] Tạo thông báo ở trạng thái DRAFT, chưa gửi cho ai."""
    return await NotificationService.create_notification(db, data, admin.id)


@router.get("/{notification_id}", response_model=NotificationRead)
async def get_notification(
    notification_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin)
):
    return await NotificationService.get_notification(db, notification_id)


@router.put("/{notification_id}", response_model=NotificationRead)
async def update_notification(
    notification_id: uuid.UUID,
    data: NotificationUpdate,
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin)
):
    return await NotificationService.update_notification(db, notification_id, data)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(
    notification_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin)
):
    await NotificationService.delete_notification(db, notification_id)


@router.post("/{notification_id}/send", response_model=DeliveryReport)
async def send_notification(
    notification_id: uuid.UUID,
    data: SendNotificationRequest,
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin)
):
    """
    [ADMIN] Gửi thông báo.

    - **target**: ALL, SUBSCRIBED hoặc CUSTOM (kèm `user_ids`)
    - **send_whatsapp**: gửi thêm qua WhatsApp
    """
    return await NotificationService.send_notification(
        db, notification_id, data.target, data.user_ids, data.send_whatsapp
    )


@router.post("/deliveries/push", response_model=DeliveryReport)
async def run_pending_push(
    notification_id: Optional[uuid.UUID] = None,
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin)
):
    """[ADMIN] Chạy lại lượt gửi push cho các bản ghi còn PENDING."""
    return await NotificationService.deliver_pending_push(db, notification_id)


@router.post("/deliveries/whatsapp", response_model=DeliveryReport)
async def run_pending_whatsapp(
    notification_id: Optional[uuid.UUID] = None,
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin)
):
    return await NotificationService.deliver_pending_whatsapp(db, notification_id)
