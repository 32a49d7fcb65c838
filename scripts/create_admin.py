#!/usr/bin/env python
"""
Tạo tài khoản admin đầu tiên.

Cách sử dụng:
    python scripts/create_admin.py admin@example.com "mat-khau" "Tên Admin"
"""
import asyncio
import logging
import os
import sys

from dotenv import load_dotenv

# Thêm thư mục gốc của dự án vào sys.path
current_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(current_dir)
sys.path.append(project_root)

# Load biến môi trường từ file .env
load_dotenv(os.path.join(project_root, '.env'))

from app.database.database import async_session, create_tables  # noqa: E402
from app.repositories.admin_repository import AdminRepository  # noqa: E402

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("create_admin")


async def create_admin(email: str, password: str, full_name: str = None):
    await create_tables()
    async with async_session() as db:
        existing = await AdminRepository.get_by_email(db, email)
        if existing:
            logger.info(f"Admin {existing.email} already exists")
            return existing
        admin = await AdminRepository.create(db, email, password, full_name=full_name, role="superadmin")
        logger.info(f"Created admin {admin.email} ({admin.id})")
        return admin


if __name__ == "__main__":
    if len(sys.argv) < 3:
        print(__doc__)
        sys.exit(1)
    asyncio.run(create_admin(sys.argv[1], sys.argv[2], sys.argv[3] if len(sys.argv) > 3 else None))
