import uuid
from sqlalchemy import Column, String, Boolean, DateTime, Uuid

from app.database.database import Base
from app.utils.time import get_utc_now


class Admin(Base):
    """
    Model cho bảng admins: tài khoản quản trị, tách biệt với người dùng cuối.
    """
    __tablename__ = "admins"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String, unique=True, nullable=False, index=True)  # Luôn lưu chữ thường
    hashed_password = Column(String, nullable=False)
    full_name = Column(String, nullable=True)
    role = Column(String, nullable=False, default="admin")  # 'admin' hoặc 'superadmin'
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=get_utc_now)
    updated_at = Column(DateTime, default=get_utc_now, onupdate=get_utc_now)

    def __repr__(self):
        return f"<Admin(email='{self.email}', role='{self.role}')>"
