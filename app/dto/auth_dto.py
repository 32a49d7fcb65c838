from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator
from typing import Optional

from app.dto.user_dto import UserRead


class RegisterRequest(BaseModel):
    """DTO cho request đăng ký bằng email + mật khẩu."""
    email: EmailStr = Field(..., description="Email của người dùng")
    password: str = Field(..., min_length=6, description="Mật khẩu, tối thiểu 6 ký tự")
    whatsapp: str = Field(..., description="Số WhatsApp, 10-15 chữ số")
    device_id: str = Field(..., min_length=1, description="ID thiết bị đăng ký")
    full_name: Optional[str] = None
    profile_pic: Optional[str] = None
    firebase_token: Optional[str] = None


class MobileRegisterRequest(BaseModel):
    """DTO cho luồng đăng ký/đăng nhập cũ bằng số mobile."""
    mobile: str = Field(..., min_length=6)
    device_id: Optional[str] = None
    full_name: Optional[str] = None
    email: Optional[EmailStr] = None
    profile_pic: Optional[str] = None
    firebase_token: Optional[str] = None


class SendOtpRequest(BaseModel):
    whatsapp: str = Field(..., description="Số WhatsApp nhận mã OTP")


class VerifyOtpRequest(BaseModel):
    whatsapp: str
    otp: str = Field(..., min_length=4, max_length=8)
    device_id: Optional[str] = None
    firebase_token: Optional[str] = None


class LoginRequest(BaseModel):
    """DTO đăng nhập bằng mật khẩu, định danh qua email hoặc WhatsApp."""
    email: Optional[EmailStr] = None
    whatsapp: Optional[str] = None
    password: str
    device_id: Optional[str] = None
    firebase_token: Optional[str] = None

    @model_validator(mode="after")
    def check_identity(self):
        if not self.email and not self.whatsapp:
            raise ValueError("Email or WhatsApp number is required")
        return self


class DeviceMismatchBlockRequest(BaseModel):
    email: EmailStr
    device_id: str = Field(..., min_length=1)


class PenaltyOrderRequest(BaseModel):
    email: EmailStr
    amount: Optional[int] = Field(None, gt=0, description="Số tiền (đơn vị chính), mặc định theo cấu hình")


class PenaltyVerifyRequest(BaseModel):
    email: EmailStr
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str


class AuthResponse(BaseModel):
    """Response trả về sau khi xác thực thành công."""
    access_token: str
    token_type: str = "bearer"
    user: UserRead
    is_registered: Optional[bool] = None


class AdminLoginRequest(BaseModel):
    email: EmailStr
    password: str

    @field_validator("email")
    def lower_email(cls, v):
        return v.lower()
