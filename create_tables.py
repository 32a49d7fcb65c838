# create_tables.py
import asyncio
import logging

from app.database.database import create_tables

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def create_all():
    logger.info("Creating all tables...")
    await create_tables()
    logger.info("Done! All tables created successfully.")


if __name__ == "__main__":
    asyncio.run(create_all())
