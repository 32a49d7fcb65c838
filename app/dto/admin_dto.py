from pydantic import BaseModel
from typing import Optional
from datetime import datetime
import uuid


class AdminRead(BaseModel):
    id: uuid.UUID
    email: str
    full_name: Optional[str] = None
    role: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AdminAuthResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    admin: AdminRead
