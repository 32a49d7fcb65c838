import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.admin import Admin
from app.utils.security import hash_password


class AdminRepository:
    """Repository cho tài khoản admin."""

    @staticmethod
    async def create(db: AsyncSession, email: str, password: str, full_name: Optional[str] = None, role: str = "admin") -> Admin:
        db_admin = Admin(
            email=email.lower(),
            hashed_password=hash_password(password),
            full_name=full_name,
            role=role,
        )
        db.add(db_admin)
        await db.commit()
        await db.refresh(db_admin)
        return db_admin

    @staticmethod
    async def get_by_id(db: AsyncSession, admin_id: uuid.UUID) -> Optional[Admin]:
        result = await db.execute(select(Admin).where(Admin.id == admin_id))
        return result.scalars().first()

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> Optional[Admin]:
        result = await db.execute(select(Admin).where(Admin.email == email.lower()))
        return result.scalars().first()
