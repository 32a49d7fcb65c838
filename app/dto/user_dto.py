from pydantic import BaseModel, EmailStr, Field
from typing import List, Optional
from datetime import datetime
import uuid


class UserRead(BaseModel):
    """DTO cho response trả về thông tin người dùng."""
    id: uuid.UUID
    mobile: Optional[str] = None
    email: Optional[str] = None
    whatsapp: Optional[str] = None
    full_name: Optional[str] = None
    profile_pic: Optional[str] = None
    is_blocked: bool
    device_id: Optional[str] = None
    last_device_login: Optional[datetime] = None
    device_change_requested: bool = False
    device_change_requested_at: Optional[datetime] = None
    last_activity: Optional[datetime] = None
    active_subscription_id: Optional[uuid.UUID] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserProfileUpdate(BaseModel):
    """DTO cho người dùng tự cập nhật hồ sơ."""
    full_name: Optional[str] = None
    profile_pic: Optional[str] = None


class PushTokenRequest(BaseModel):
    token: str = Field(..., min_length=1)


class AdminUserCreate(BaseModel):
    """DTO cho admin tạo người dùng. Cần ít nhất một kênh định danh."""
    email: Optional[EmailStr] = None
    whatsapp: Optional[str] = None
    mobile: Optional[str] = None
    password: Optional[str] = Field(None, min_length=6)
    full_name: Optional[str] = None
    profile_pic: Optional[str] = None


class AdminUserUpdate(BaseModel):
    email: Optional[EmailStr] = None
    whatsapp: Optional[str] = None
    mobile: Optional[str] = None
    password: Optional[str] = Field(None, min_length=6)
    full_name: Optional[str] = None
    profile_pic: Optional[str] = None


class UserListItem(UserRead):
    """Người dùng kèm thông tin gói đang active trong danh sách admin."""
    active_plan_title: Optional[str] = None
    active_plan_expiry: Optional[datetime] = None


class DeviceConflictEntry(BaseModel):
    type: str  # MULTIPLE_USERS | ABANDONED_DEVICE | DEVICE_CHANGE_REQUESTED
    device_id: Optional[str] = None
    users: List[UserRead]
    requested_at: Optional[datetime] = None


class UserAnalytics(BaseModel):
    total_users: int
    live_users: int
    online_users: int
    subscribed_users: int
    blocked_users: int
    unsubscribed_users: int
