import uuid
from sqlalchemy import Column, String, Integer, Boolean, DateTime, JSON, CheckConstraint, Uuid
from sqlalchemy.orm import relationship

from app.database.database import Base
from app.utils.time import get_utc_now

ALLOWED_DURATIONS = (1, 3, 6, 12)
MAX_DESCRIPTION_LINES = 6
MAX_OFFER_TEXT_LENGTH = 30


class Plan(Base):
    """
    Model cho bảng plans trong database.
    Lưu trữ các gói cước có thể mua. Không bao giờ xóa cứng, chỉ đặt is_active = False.
    """
    __tablename__ = "plans"
    __table_args__ = (
        CheckConstraint("actual_price >= 0", name="ck_plans_actual_price_non_negative"),
        CheckConstraint("discounted_price >= 0", name="ck_plans_discounted_price_non_negative"),
        CheckConstraint("duration_in_months IN (1, 3, 6, 12)", name="ck_plans_duration_allowed"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(String, nullable=False)
    code = Column(String, unique=True, nullable=False, index=True)  # Luôn viết hoa, dùng khi import hàng loạt
    description = Column(JSON, nullable=False, default=list)  # Tối đa 6 dòng
    duration_in_months = Column(Integer, nullable=False)
    actual_price = Column(Integer, nullable=False)
    discounted_price = Column(Integer, nullable=False)

    show_offer_badge = Column(Boolean, nullable=False, default=False)
    offer_text = Column(String(MAX_OFFER_TEXT_LENGTH), nullable=True)
    offer_start_at = Column(DateTime, nullable=True)
    offer_end_at = Column(DateTime, nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=get_utc_now)
    updated_at = Column(DateTime, default=get_utc_now, onupdate=get_utc_now)

    user_subscriptions = relationship("UserSubscription", back_populates="plan")

    def __repr__(self):
        return f"<Plan(code='{self.code}', months={self.duration_in_months})>"
