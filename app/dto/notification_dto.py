from pydantic import BaseModel, Field, model_validator
from typing import List, Optional
from datetime import datetime
import uuid

from app.models.notification import NotificationType


class NotificationCreate(BaseModel):
    title: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    type: NotificationType = NotificationType.INFO


class NotificationUpdate(BaseModel):
    title: Optional[str] = None
    message: Optional[str] = None
    type: Optional[NotificationType] = None


class NotificationRead(BaseModel):
    id: uuid.UUID
    title: str
    message: str
    type: str
    status: str
    created_by: Optional[uuid.UUID] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SendNotificationRequest(BaseModel):
    """Chọn tập người nhận: ALL, SUBSCRIBED hoặc CUSTOM (kèm danh sách user_ids)."""
    target: str = Field("ALL", pattern="^(ALL|SUBSCRIBED|CUSTOM)$")
    user_ids: List[uuid.UUID] = Field(default_factory=list)
    send_whatsapp: bool = False

    @model_validator(mode="after")
    def check_custom(self):
        if self.target == "CUSTOM" and not self.user_ids:
            raise ValueError("user_ids is required for CUSTOM target")
        return self


class UserNotificationRead(BaseModel):
    id: uuid.UUID
    notification_id: uuid.UUID
    status: str
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    notification: Optional[NotificationRead] = None

    class Config:
        from_attributes = True


class DeliveryReport(BaseModel):
    """Kết quả một lượt gửi."""
    processed: int = 0
    sent: int = 0
    failed: int = 0
