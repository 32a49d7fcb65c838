from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.database import get_db
from app.dto.admin_dto import AdminAuthResponse
from app.dto.auth_dto import (
    AdminLoginRequest,
    AuthResponse,
    DeviceMismatchBlockRequest,
    LoginRequest,
    MobileRegisterRequest,
    PenaltyOrderRequest,
    PenaltyVerifyRequest,
    RegisterRequest,
    SendOtpRequest,
    VerifyOtpRequest,
)
from app.dto.response import ResponseModel
from app.dto.user_dto import UserRead
from app.middlewares.auth_middleware import get_current_user
from app.models.user import User
from app.services.admin_auth_service import AdminAuthService
from app.services.auth_service import AuthService
from app.services.presence_service import LiveUserCounter, get_live_user_counter

router = APIRouter()
admin_auth_router = APIRouter()


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(
    data: RegisterRequest,
    db: AsyncSession = Depends(get_db),
    counter: LiveUserCounter = Depends(get_live_user_counter)
):
    """
    Đăng ký tài khoản bằng email, mật khẩu và số WhatsApp.

    - Tài khoản được gắn với `device_id` ngay khi tạo.
    """
    return await AuthService.register(db, data, counter)


@router.post("/register-mobile", response_model=AuthResponse)
async def register_mobile(
    data: MobileRegisterRequest,
    db: AsyncSession = Depends(get_db),
    counter: LiveUserCounter = Depends(get_live_user_counter)
):
    """Luồng cũ theo số mobile: tạo mới hoặc đăng nhập, `is_registered` cho biết tài khoản đã có trước đó."""
    return await AuthService.register_mobile(db, data, counter)


@router.post("/send-otp")
async def send_otp(data: SendOtpRequest, db: AsyncSession = Depends(get_db)):
    result = await AuthService.send_otp(db, data.whatsapp)
    return ResponseModel.success(data=result, message="OTP sent successfully")


@router.post("/resend-otp")
async def resend_otp(data: SendOtpRequest, db: AsyncSession = Depends(get_db)):
    """Gửi lại OTP, tuân theo thời gian chờ giữa hai lần gửi."""
    result = await AuthService.send_otp(db, data.whatsapp)
    return ResponseModel.success(data=result, message="OTP resent successfully")


@router.post("/verify-otp", response_model=AuthResponse)
async def verify_otp(
    data: VerifyOtpRequest,
    db: AsyncSession = Depends(get_db),
    counter: LiveUserCounter = Depends(get_live_user_counter)
):
    return await AuthService.verify_otp(db, data, counter)


@router.post("/login", response_model=AuthResponse)
async def login(
    data: LoginRequest,
    db: AsyncSession = Depends(get_db),
    counter: LiveUserCounter = Depends(get_live_user_counter)
):
    """
    Đăng nhập bằng email hoặc WhatsApp và mật khẩu.

    - **device_id** bắt buộc; thiết bị khác với thiết bị đã gắn sẽ bị từ chối (403).
    """
    return await AuthService.login(db, data, counter)


@router.post("/logout")
async def logout(
    current_user: User = Depends(get_current_user),
    counter: LiveUserCounter = Depends(get_live_user_counter)
):
    await AuthService.logout(current_user, counter)
    return ResponseModel.success(message="Logged out successfully")


@router.post("/device-mismatch/block")
async def confirm_device_mismatch_block(data: DeviceMismatchBlockRequest, db: AsyncSession = Depends(get_db)):
    """Người dùng xác nhận đăng nhập trên thiết bị khác: tài khoản bị khóa chờ xử lý."""
    user = await AuthService.confirm_device_mismatch_block(db, data.email, data.device_id)
    return ResponseModel.success(
        data=UserRead.model_validate(user),
        message="Account blocked due to device mismatch. Contact admin or pay the penalty to unblock."
    )


@router.post("/penalty/order")
async def create_penalty_order(data: PenaltyOrderRequest, db: AsyncSession = Depends(get_db)):
    order = await AuthService.create_penalty_order(db, data.email, data.amount)
    return ResponseModel.success(data=order, message="Penalty order created")


@router.post("/penalty/verify")
async def verify_penalty_payment(data: PenaltyVerifyRequest, db: AsyncSession = Depends(get_db)):
    """Xác minh thanh toán phí phạt; thành công thì mở khóa và gỡ thiết bị cũ."""
    user = await AuthService.verify_penalty_payment(
        db,
        data.email,
        data.razorpay_order_id,
        data.razorpay_payment_id,
        data.razorpay_signature,
    )
    return ResponseModel.success(
        data=UserRead.model_validate(user),
        message="Penalty paid successfully. Account unblocked and device reset."
    )


@admin_auth_router.post("/login", response_model=AdminAuthResponse)
async def admin_login(data: AdminLoginRequest, db: AsyncSession = Depends(get_db)):
    return await AdminAuthService.login(db, data.email, data.password)
