import uuid
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, JSON, Uuid
from sqlalchemy.orm import relationship

from app.database.database import Base
from app.utils.time import get_utc_now


class User(Base):
    """
    Model cho bảng users trong database.
    Lưu trữ danh tính người dùng cuối: kênh định danh, ràng buộc thiết bị, trạng thái khóa, OTP.
    """
    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # Kênh định danh. whatsapp là khóa chính thức, mobile là khóa cũ (legacy).
    mobile = Column(String, unique=True, nullable=True, index=True)
    email = Column(String, unique=True, nullable=True, index=True)
    whatsapp = Column(String, unique=True, nullable=True, index=True)

    hashed_password = Column(String, nullable=True)  # Tài khoản chỉ dùng OTP không có mật khẩu
    full_name = Column(String, nullable=True)
    profile_pic = Column(String, nullable=True)
    firebase_tokens = Column(JSON, nullable=False, default=list)

    is_blocked = Column(Boolean, nullable=False, default=False)

    # Ràng buộc thiết bị
    device_id = Column(String, nullable=True, index=True)
    last_device_login = Column(DateTime, nullable=True)
    device_change_requested = Column(Boolean, nullable=False, default=False)
    device_change_requested_at = Column(DateTime, nullable=True)

    last_activity = Column(DateTime, nullable=True)

    # Con trỏ tới gói đang active, chỉ do SubscriptionService cập nhật
    active_subscription_id = Column(
        Uuid(as_uuid=True),
        ForeignKey(
            "user_subscriptions.id",
            ondelete="SET NULL",
            use_alter=True,
            name="fk_users_active_subscription_id"
        ),
        nullable=True
    )

    # OTP challenge
    otp_code_hash = Column(String, nullable=True)
    otp_expires_at = Column(DateTime, nullable=True)
    otp_attempts = Column(Integer, nullable=False, default=0)
    otp_sent_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=get_utc_now)
    updated_at = Column(DateTime, default=get_utc_now, onupdate=get_utc_now)

    # Relationships
    subscriptions = relationship(
        "UserSubscription",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
        foreign_keys="UserSubscription.user_id"
    )
    notifications = relationship(
        "UserNotification",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True
    )

    def __repr__(self):
        return f"<User(id='{self.id}', whatsapp='{self.whatsapp}', email='{self.email}')>"
