from pydantic import BaseModel, EmailStr, Field
from typing import Dict, List, Optional
from datetime import datetime
import uuid

from app.dto.plan_dto import PlanRead


class SubscriptionRead(BaseModel):
    """
    DTO cho response trả về thông tin gói đăng ký người dùng.
    """
    id: uuid.UUID
    user_id: uuid.UUID
    plan_id: uuid.UUID
    start_date: datetime
    expiry_date: datetime
    is_active: bool
    payment_id: Optional[str] = None
    payment_provider: Optional[str] = None
    usage_count: int = 0
    usage_reset_at: Optional[datetime] = None
    expired_notification_sent: bool = False
    plan: Optional[PlanRead] = None

    class Config:
        from_attributes = True


class MySubscriptionRead(BaseModel):
    """Gói hiện tại của người dùng, kèm số ngày còn lại."""
    subscription: Optional[SubscriptionRead] = None
    plan_title: Optional[str] = None
    expiry_date: Optional[datetime] = None
    days_left: int = 0
    is_active: bool = False


class SubscribeRequest(BaseModel):
    plan_id: uuid.UUID


class OrderRead(BaseModel):
    """Order đã tạo trên cổng thanh toán để client mở checkout."""
    order_id: str
    amount: int  # Đơn vị nhỏ nhất (paise)
    currency: str
    receipt: str
    key_id: Optional[str] = None
    plan: Optional[PlanRead] = None


class VerifyPaymentRequest(BaseModel):
    plan_id: uuid.UUID
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str


class AssignPlanRequest(BaseModel):
    plan_id: uuid.UUID


class BulkAssignRow(BaseModel):
    """Một dòng đã được parse sẵn từ file import: định danh user + mã gói."""
    email: Optional[EmailStr] = None
    mobile: Optional[str] = None
    plan_code: str = Field(..., min_length=1)


class BulkAssignRequest(BaseModel):
    rows: List[BulkAssignRow]


class BulkAssignRowResult(BaseModel):
    row: int
    identifier: Optional[str] = None
    success: bool
    message: str
    subscription_id: Optional[uuid.UUID] = None


class BulkAssignResult(BaseModel):
    total: int
    succeeded: int
    failed: int
    results: List[BulkAssignRowResult]


class UsageRead(BaseModel):
    usage_count: int
    daily_limit: int
    remaining: int
    usage_reset_at: Optional[datetime] = None


class SubscriptionAnalytics(BaseModel):
    active_subscriptions: int
    expired_subscriptions: int
    per_plan: Dict[str, int]


class PlanPurchaseStat(BaseModel):
    plan_id: uuid.UUID
    plan_title: str
    plan_code: str
    duration_in_months: int
    price: int
    purchase_count: int
    total_amount: int


class EarningsAnalytics(BaseModel):
    today_earnings: int
    monthly_earnings: int
    total_earnings: int
    plan_wise: List[PlanPurchaseStat]


class BestsellerPlans(BaseModel):
    bestseller_plan: Optional[PlanPurchaseStat] = None
    top_plans: List[PlanPurchaseStat]
