from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from datetime import datetime
import uuid

from app.models.plan import ALLOWED_DURATIONS, MAX_DESCRIPTION_LINES, MAX_OFFER_TEXT_LENGTH


def _check_description(v):
    if v is not None and len(v) > MAX_DESCRIPTION_LINES:
        raise ValueError(f"Description can have at most {MAX_DESCRIPTION_LINES} lines")
    return v


def _check_duration(v):
    if v is not None and v not in ALLOWED_DURATIONS:
        raise ValueError(f"Duration must be one of {ALLOWED_DURATIONS}")
    return v


class PlanCreate(BaseModel):
    """DTO cho request tạo gói cước mới."""
    title: str = Field(..., min_length=1)
    code: str = Field(..., min_length=1, description="Mã gói, tự động viết hoa")
    description: List[str] = Field(default_factory=list)
    duration_in_months: int
    actual_price: int = Field(..., ge=0)
    discounted_price: int = Field(..., ge=0)
    show_offer_badge: bool = False
    offer_text: Optional[str] = Field(None, max_length=MAX_OFFER_TEXT_LENGTH)
    offer_start_at: Optional[datetime] = None
    offer_end_at: Optional[datetime] = None
    is_active: bool = True

    @field_validator("code")
    def upper_code(cls, v):
        return v.strip().upper()

    @field_validator("description")
    def description_lines(cls, v):
        return _check_description(v)

    @field_validator("duration_in_months")
    def allowed_duration(cls, v):
        return _check_duration(v)


class PlanUpdate(BaseModel):
    title: Optional[str] = None
    code: Optional[str] = None
    description: Optional[List[str]] = None
    duration_in_months: Optional[int] = None
    actual_price: Optional[int] = Field(None, ge=0)
    discounted_price: Optional[int] = Field(None, ge=0)
    show_offer_badge: Optional[bool] = None
    offer_text: Optional[str] = Field(None, max_length=MAX_OFFER_TEXT_LENGTH)
    offer_start_at: Optional[datetime] = None
    offer_end_at: Optional[datetime] = None
    is_active: Optional[bool] = None

    @field_validator("code")
    def upper_code(cls, v):
        return v.strip().upper() if v is not None else v

    @field_validator("description")
    def description_lines(cls, v):
        return _check_description(v)

    @field_validator("duration_in_months")
    def allowed_duration(cls, v):
        return _check_duration(v)


class PlanRead(BaseModel):
    """DTO cho response trả về thông tin gói cước."""
    id: uuid.UUID
    title: str
    code: str
    description: List[str] = []
    duration_in_months: int
    actual_price: int
    discounted_price: int
    show_offer_badge: bool
    offer_text: Optional[str] = None
    offer_start_at: Optional[datetime] = None
    offer_end_at: Optional[datetime] = None
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
