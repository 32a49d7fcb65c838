import uuid
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.database import get_db
from app.dto.plan_dto import PlanCreate, PlanRead, PlanUpdate
from app.middlewares.auth_middleware import get_current_admin
from app.models.admin import Admin
from app.services.plan_service import PlanService

router = APIRouter()


@router.get("", response_model=List[PlanRead])
async def get_all_plans(
    include_inactive: bool = True,
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin)
):
    """[ADMIN] Lấy danh sách tất cả các gói cước, kể cả gói đã tắt."""
    return await PlanService.list_plans(db, include_inactive)


@router.post("", response_model=PlanRead, status_code=status.HTTP_201_CREATED)
async def create_plan(
    data: PlanCreate,
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin)
):
    """
    [ADMIN] Tạo một gói cước mới.

    - **code**: duy nhất, tự động viết hoa
    - **duration_in_months**: 1, 3, 6 hoặc 12
    - **description**: tối đa 6 dòng
    """
    return await PlanService.create_plan(db, data)


@router.get("/{plan_id}", response_model=PlanRead)
async def get_plan(
    plan_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin)
):
    return await PlanService.get_plan(db, plan_id)


@router.put("/{plan_id}", response_model=PlanRead)
async def update_plan(
    plan_id: uuid.UUID,
    data: PlanUpdate,
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin)
):
    return await PlanService.update_plan(db, plan_id, data)


@router.delete("/{plan_id}", response_model=PlanRead)
async def delete_plan(
    plan_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    admin: Admin = Depends(get_current_admin)
):
    """[ADMIN] Tắt gói (xóa mềm). Các gói đã bán vẫn giữ nguyên."""
    return await PlanService.disable_plan(db, plan_id)
