import logging
import uuid
from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from app.dto.plan_dto import PlanCreate, PlanUpdate
from app.exceptions.base_exception import ConflictException, NotFoundException
from app.models.plan import Plan
from app.repositories.plan_repository import PlanRepository
from app.utils.time import get_utc_now

logger = logging.getLogger(__name__)


class PlanService:
    """
    Service quản lý danh mục gói cước.
    """

    @staticmethod
    async def create_plan(db: AsyncSession, data: PlanCreate) -> Plan:
        if await PlanRepository.get_by_code(db, data.code):
            raise ConflictException(f"Plan with code '{data.code}' already exists", "PLAN_CODE_EXISTS")
        plan = await PlanRepository.create(db, data)
        logger.info(f"Created plan {plan.code} ({plan.id})")
        return plan

    @staticmethod
    async def get_plan(db: AsyncSession, plan_id: uuid.UUID) -> Plan:
        plan = await PlanRepository.get_by_id(db, plan_id)
        if not plan:
            raise NotFoundException("Plan not found", "PLAN_NOT_FOUND")
        return plan

    @staticmethod
    async def list_plans(db: AsyncSession, include_inactive: bool = True) -> List[Plan]:
        return await PlanRepository.get_all(db, include_inactive=include_inactive)

    @staticmethod
    async def list_purchasable_plans(db: AsyncSession) -> List[Plan]:
        return await PlanRepository.get_purchasable(db, get_utc_now())

    @staticmethod
    async def update_plan(db: AsyncSession, plan_id: uuid.UUID, data: PlanUpdate) -> Plan:
        plan = await PlanService.get_plan(db, plan_id)
        if data.code and data.code != plan.code:
            if await PlanRepository.get_by_code(db, data.code):
                raise ConflictException(f"Plan with code '{data.code}' already exists", "PLAN_CODE_EXISTS")
        return await PlanRepository.update(db, plan, data)

    @staticmethod
    async def disable_plan(db: AsyncSession, plan_id: uuid.UUID) -> Plan:
        plan = await PlanService.get_plan(db, plan_id)
        plan = await PlanRepository.soft_delete(db, plan)
        logger.info(f"Disabled plan {plan.code}")
        return plan
