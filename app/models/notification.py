import enum
import uuid
from sqlalchemy import Column, String, Text, DateTime, Uuid
from sqlalchemy.orm import relationship

from app.database.database import Base
from app.utils.time import get_utc_now


class NotificationType(str, enum.Enum):
    INFO = "INFO"
    PROMOTION = "PROMOTION"
    ALERT = "ALERT"
    SUBSCRIPTION = "SUBSCRIPTION"
    SUBSCRIPTION_ACTIVATED = "SUBSCRIPTION_ACTIVATED"
    SUBSCRIPTION_EXPIRING = "SUBSCRIPTION_EXPIRING"
    SUBSCRIPTION_EXPIRED = "SUBSCRIPTION_EXPIRED"


class NotificationStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    SENT = "SENT"


class Notification(Base):
    """
    Model cho bảng notifications: một thông báo broadcast do admin hoặc hệ thống tạo.
    """
    __tablename__ = "notifications"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String, nullable=False, default=NotificationType.INFO.value)
    status = Column(String, nullable=False, default=NotificationStatus.DRAFT.value)
    created_by = Column(Uuid(as_uuid=True), nullable=True)  # admin id, None với thông báo hệ thống

    created_at = Column(DateTime, default=get_utc_now)
    updated_at = Column(DateTime, default=get_utc_now, onupdate=get_utc_now)

    deliveries = relationship(
        "UserNotification",
        back_populates="notification",
        cascade="all, delete-orphan",
        passive_deletes=True
    )
