from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from typing import AsyncGenerator
import asyncio

from app.configs.settings import settings


def _engine_options() -> dict:
    # SQLite (aiosqlite) không nhận các tham số pool của PostgreSQL
    if settings.DATABASE_URL.startswith("sqlite"):
        return {}
    return {"pool_pre_ping": True, "pool_size": 10, "max_overflow": 20}


engine = create_async_engine(settings.DATABASE_URL, echo=False, **_engine_options())

# Đối tượng vẫn đọc được sau commit
async_session = sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)

Base = declarative_base()

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Session cho mỗi request: commit khi endpoint chạy xong, rollback nếu có exception.

    Những ghi cần giữ lại kể cả khi request lỗi (vd số lần nhập sai OTP) được
    service commit trước khi raise.
    """
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

async def create_tables():
    """
    Tạo các bảng users, plans, user_subscriptions, notifications, user_notifications,
    admins (kèm index unique từng phần cho gói active) nếu chưa tồn tại.
    """
    import app.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

if __name__ == "__main__":
    asyncio.run(create_tables())
