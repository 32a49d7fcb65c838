from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.database import get_db
from app.dto.plan_dto import PlanRead
from app.dto.subscription_dto import (
    MySubscriptionRead,
    OrderRead,
    SubscribeRequest,
    SubscriptionRead,
    UsageRead,
    VerifyPaymentRequest,
)
from app.middlewares.auth_middleware import get_current_active_user
from app.middlewares.subscription_middleware import check_usage_limit
from app.models.user import User
from app.services.plan_service import PlanService
from app.services.subscription_service import SubscriptionService

router = APIRouter()


@router.get("/plans", response_model=List[PlanRead])
async def get_purchasable_plans(db: AsyncSession = Depends(get_db)):
    """
    [PUBLIC] Danh sách gói có thể mua.

    - Chỉ gói đang active; gói có badge ưu đãi đã hết hạn ưu đãi sẽ bị ẩn.
    """
    return await PlanService.list_purchasable_plans(db)


@router.get("/me", response_model=MySubscriptionRead)
async def get_my_subscription(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Gói đang active của người dùng hiện tại: tên gói, ngày hết hạn, số ngày còn lại."""
    return await SubscriptionService.get_my_subscription(db, current_user.id)


@router.get("/me/history", response_model=List[SubscriptionRead])
async def get_my_subscription_history(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    return await SubscriptionService.list_user_subscriptions(db, current_user.id)


@router.post("/subscribe", response_model=OrderRead)
async def subscribe(
    data: SubscribeRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Tạo order thanh toán cho gói đã chọn (giá sau giảm, đơn vị nhỏ nhất)."""
    return await SubscriptionService.create_subscription_order(db, current_user, data.plan_id)


@router.post("/verify-payment", response_model=SubscriptionRead, status_code=status.HTTP_201_CREATED)
async def verify_payment(
    data: VerifyPaymentRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """
    Xác minh chữ ký thanh toán rồi kích hoạt gói.

    - Chữ ký sai: 400, không có gói nào bị thay đổi.
    - Gói active cũ (nếu có) bị tắt và thay bằng gói mới.
    """
    return await SubscriptionService.verify_and_activate(db, current_user, data)


@router.post("/me/usage", response_model=UsageRead)
async def consume_usage(usage: UsageRead = Depends(check_usage_limit())):
    """Dùng một lượt của tính năng trả phí; hết lượt trong ngày trả 429."""
    return usage
