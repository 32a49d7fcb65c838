import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.database import get_db
from app.dto.response import ResponseModel
from app.dto.subscription_dto import (
    AssignPlanRequest,
    BestsellerPlans,
    BulkAssignRequest,
    BulkAssignResult,
    EarningsAnalytics,
    SubscriptionAnalytics,
    SubscriptionRead,
)
from app.dto.user_dto import (
    AdminUserCreate,
    AdminUserUpdate,
    DeviceConflictEntry,
    UserAnalytics,
    UserRead,
)
from app.middlewares.auth_middleware import get_current_admin
from app.models.admin import Admin
from app.services.presence_service import LiveUserCounter, get_live_user_counter
from app.services.subscription_service import SubscriptionService
from app.services.user_service import UserService

router = APIRouter()


@router.get("/users")
async def get_all_users(
    search: Optional[str] = None,
    is_blocked: Optional[bool] = None,
    has_active_plan: Optional[bool] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin)
):
    """
    [ADMIN] Danh sách người dùng.

    - **search**: tìm theo tên, email, mobile, WhatsApp
    - **is_blocked**, **has_active_plan**: bộ lọc
    """
    items, total = await UserService.list_users(
        db, search, is_blocked, has_active_plan, skip=(page - 1) * limit, limit=limit
    )
    return ResponseModel.paginated(items, total, page, limit, message="Users fetched")


@router.get("/users/device-conflicts", response_model=List[DeviceConflictEntry])
async def get_device_conflicts(
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin)
):
    """[ADMIN] Thiết bị dùng chung, thiết bị bỏ không quá 30 ngày, yêu cầu đổi thiết bị đang chờ."""
    return await UserService.get_device_conflicts(db)


@router.get("/users/{user_id}", response_model=UserRead)
async def get_user_by_id(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin)
):
    return await UserService.get_user(db, user_id)


@router.post("/users", response_model=UserRead, status_code=status.HTTP_201_CREATED)
async def create_user(
    data: AdminUserCreate,
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin)
):
    return await UserService.create_user(db, data)


@router.put("/users/{user_id}", response_model=UserRead)
async def update_user_by_id(
    user_id: uuid.UUID,
    data: AdminUserUpdate,
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin)
):
    return await UserService.update_user(db, user_id, data)


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user_by_id(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin)
):
    """[ADMIN] Xóa người dùng cùng các gói và thông báo của họ."""
    await UserService.delete_user(db, user_id)


@router.post("/users/{user_id}/block", response_model=UserRead)
async def block_user(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin)
):
    return await UserService.set_blocked(db, user_id, True)


@router.post("/users/{user_id}/unblock", response_model=UserRead)
async def unblock_user(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin)
):
    return await UserService.set_blocked(db, user_id, False)


@router.post("/users/{user_id}/reset-device")
async def reset_user_device(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin)
):
    user = await UserService.reset_device(db, user_id)
    return ResponseModel.success(
        data=UserRead.model_validate(user),
        message="User device reset successfully. User can now login from a new device."
    )


@router.post("/users/{user_id}/allow-new-device")
async def allow_new_device(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin)
):
    """[ADMIN] Duyệt yêu cầu đổi thiết bị của người dùng."""
    user = await UserService.allow_new_device(db, user_id)
    return ResponseModel.success(
        data=UserRead.model_validate(user),
        message="New device allowed. User can now login from a new device."
    )


@router.get("/users/{user_id}/subscriptions", response_model=List[SubscriptionRead])
async def get_user_subscriptions(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin)
):
    await UserService.get_user(db, user_id)
    return await SubscriptionService.list_user_subscriptions(db, user_id)


@router.post("/users/{user_id}/assign-plan", response_model=SubscriptionRead, status_code=status.HTTP_201_CREATED)
async def assign_plan(
    user_id: uuid.UUID,
    data: AssignPlanRequest,
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin)
):
    """[ADMIN] Gán gói cho người dùng không qua thanh toán; gói active cũ bị thay thế."""
    return await SubscriptionService.assign_plan_manually(db, admin, user_id, data.plan_id)


@router.post("/subscriptions/bulk-assign", response_model=BulkAssignResult)
async def bulk_assign_plans(
    data: BulkAssignRequest,
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin)
):
    """
    [ADMIN] Gán gói hàng loạt.

    Mỗi dòng xác định người dùng bằng email hoặc mobile và gói bằng mã gói.
    Kết quả trả về theo từng dòng.
    """
    return await SubscriptionService.bulk_assign(db, admin, data.rows)


@router.get("/analytics/users", response_model=UserAnalytics)
async def get_user_analytics(
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
    counter: LiveUserCounter = Depends(get_live_user_counter)
):
    return await UserService.get_analytics(db, counter)


@router.get("/analytics/subscriptions", response_model=SubscriptionAnalytics)
async def get_subscription_analytics(
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin)
):
    return await SubscriptionService.get_analytics(db)


@router.get("/analytics/earnings", response_model=EarningsAnalytics)
async def get_earnings(
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin)
):
    """[ADMIN] Doanh thu hôm nay, tháng này, tổng và theo gói. Chỉ tính gói có thanh toán."""
    return await SubscriptionService.get_earnings(db)


@router.get("/analytics/bestseller-plans", response_model=BestsellerPlans)
async def get_bestseller_plans(
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin)
):
    return await SubscriptionService.get_bestseller_plans(db)
