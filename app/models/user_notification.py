import enum
import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from app.database.database import Base
from app.utils.time import get_utc_now


class DeliveryStatus(str, enum.Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"


class UserNotification(Base):
    """
    Bản ghi giao thông báo cho từng người nhận.
    """
    __tablename__ = "user_notifications"
    __table_args__ = (
        UniqueConstraint("user_id", "notification_id", name="uq_user_notifications_user_notification"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    notification_id = Column(
        Uuid(as_uuid=True), ForeignKey("notifications.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status = Column(String, nullable=False, default=DeliveryStatus.PENDING.value, index=True)
    whatsapp_status = Column(String, nullable=True)  # None: không gửi WhatsApp cho bản ghi này
    read_at = Column(DateTime, nullable=True)
    sent_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=get_utc_now)
    updated_at = Column(DateTime, default=get_utc_now, onupdate=get_utc_now)

    user = relationship("User", back_populates="notifications")
    notification = relationship("Notification", back_populates="deliveries")
