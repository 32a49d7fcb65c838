import uuid
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Boolean, Index, Uuid
from sqlalchemy.orm import relationship

from app.database.database import Base
from app.utils.time import get_utc_now


class UserSubscription(Base):
    """
    Model cho bảng user_subscriptions trong database.
    Mỗi dòng là một lần mua / gán gói cho người dùng.

    Index unique từng phần trên user_id (chỉ với các dòng is_active) bảo đảm mỗi user
    có tối đa một gói active; khi hai lần kích hoạt chạy song song, DB sẽ từ chối bên thua.
    """
    __tablename__ = "user_subscriptions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    plan_id = Column(Uuid(as_uuid=True), ForeignKey("plans.id"), nullable=False)

    start_date = Column(DateTime, nullable=False, default=get_utc_now)
    expiry_date = Column(DateTime, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    payment_id = Column(String, nullable=True)
    payment_provider = Column(String, nullable=True)

    usage_count = Column(Integer, nullable=False, default=0)
    usage_reset_at = Column(DateTime, nullable=True)

    expired_notification_sent = Column(Boolean, nullable=False, default=False)
    reminder_sent_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=get_utc_now)
    updated_at = Column(DateTime, default=get_utc_now, onupdate=get_utc_now)

    __table_args__ = (
        Index(
            "uq_user_subscriptions_one_active",
            "user_id",
            unique=True,
            postgresql_where=(is_active == True),  # noqa: E712
            sqlite_where=(is_active == True),  # noqa: E712
        ),
        Index("idx_user_subscriptions_active_expiry", "is_active", "expiry_date"),
        # Một payment_id chỉ kích hoạt được một gói; NULL (gán thủ công) không bị ràng buộc
        Index("uq_user_subscriptions_payment_id", "payment_id", unique=True),
    )

    # Relationships
    user = relationship("User", back_populates="subscriptions", foreign_keys=[user_id])
    plan = relationship("Plan", back_populates="user_subscriptions")

    def __repr__(self):
        return f"<UserSubscription(user_id='{self.user_id}', active={self.is_active}, expiry='{self.expiry_date}')>"
