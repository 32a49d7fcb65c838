import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.plan import Plan
from app.dto.plan_dto import PlanCreate, PlanUpdate


class PlanRepository:
    """
    Repository xử lý các thao tác CRUD cho đối tượng Plan.
    """

    @staticmethod
    async def create(db: AsyncSession, data: PlanCreate) -> Plan:
        db_plan = Plan(**data.model_dump())
        db.add(db_plan)
        await db.commit()
        await db.refresh(db_plan)
        return db_plan

    @staticmethod
    async def get_by_id(db: AsyncSession, plan_id: uuid.UUID) -> Optional[Plan]:
        result = await db.execute(select(Plan).where(Plan.id == plan_id))
        return result.scalars().first()

    @staticmethod
    async def get_by_code(db: AsyncSession, code: str) -> Optional[Plan]:
        result = await db.execute(select(Plan).where(Plan.code == code.strip().upper()))
        return result.scalars().first()

    @staticmethod
    async def get_all(db: AsyncSession, include_inactive: bool = False) -> List[Plan]:
        query = select(Plan)
        if not include_inactive:
            query = query.where(Plan.is_active == True)  # noqa: E712
        result = await db.execute(query.order_by(Plan.duration_in_months, Plan.discounted_price))
        return result.scalars().all()

    @staticmethod
    async def get_purchasable(db: AsyncSession, now: datetime) -> List[Plan]:
        """Gói đang bán: active, và nếu đang gắn badge ưu đãi thì ưu đãi chưa kết thúc."""
        result = await db.execute(
            select(Plan)
            .where(
                Plan.is_active == True,  # noqa: E712
                or_(
                    Plan.show_offer_badge == False,  # noqa: E712
                    Plan.offer_end_at.is_(None),
                    Plan.offer_end_at >= now,
                ),
            )
            .order_by(Plan.duration_in_months, Plan.discounted_price)
        )
        return result.scalars().all()

    @staticmethod
    async def update(db: AsyncSession, db_plan: Plan, data: PlanUpdate) -> Plan:
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(db_plan, field, value)
        await db.commit()
        await db.refresh(db_plan)
        return db_plan

    @staticmethod
    async def soft_delete(db: AsyncSession, db_plan: Plan) -> Plan:
        """Không xóa cứng để giữ tham chiếu từ các gói đăng ký cũ."""
        db_plan.is_active = False
        await db.commit()
        await db.refresh(db_plan)
        return db_plan
