import logging
import time
from datetime import timedelta
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.configs.settings import settings
from app.dto.auth_dto import (
    AuthResponse,
    LoginRequest,
    MobileRegisterRequest,
    RegisterRequest,
    VerifyOtpRequest,
)
from app.dto.user_dto import UserRead
from app.exceptions.base_exception import (
    AuthException,
    ConflictException,
    DependencyException,
    NotFoundException,
    ValidationException,
)
from app.middlewares.auth_middleware import create_user_token
from app.models.user import User
from app.repositories.user_repository import UserRepository
from app.services.device_binding_service import DeviceBindingService
from app.services.payment_service import PaymentService
from app.services.presence_service import LiveUserCounter, safe_presence_call
from app.services.whatsapp_service import WatiService
from app.utils.phone import mask_number, normalize_whatsapp_number
from app.utils.security import generate_otp_code, hash_password, verify_password
from app.utils.time import get_utc_now

logger = logging.getLogger(__name__)


def _remember_push_token(user: User, token: Optional[str]) -> None:
    if token and token not in (user.firebase_tokens or []):
        user.firebase_tokens = list(user.firebase_tokens or []) + [token]


class AuthService:
    """
    Các luồng xác thực người dùng cuối. Mọi luồng đều chạy kiểm tra thiết bị trước,
    sau đó mới kiểm tra khóa tài khoản.
    """

    @staticmethod
    async def _issue(user: User, counter: Optional[LiveUserCounter], is_registered: Optional[bool] = None) -> AuthResponse:
        token = await create_user_token(user)
        if counter is not None:
            await safe_presence_call(counter.increment(user.id))
        return AuthResponse(access_token=token, user=UserRead.model_validate(user), is_registered=is_registered)

    @staticmethod
    def _require_whatsapp(value: Optional[str]) -> str:
        normalized = normalize_whatsapp_number(value)
        if not normalized:
            raise ValidationException("Valid WhatsApp number is required")
        return normalized

    @staticmethod
    async def register(db: AsyncSession, data: RegisterRequest, counter: Optional[LiveUserCounter] = None) -> AuthResponse:
        """Đăng ký bằng email + mật khẩu + WhatsApp; tài khoản được gắn ngay với thiết bị đăng ký."""
        whatsapp = AuthService._require_whatsapp(data.whatsapp)
        email = data.email.lower()
        device_id = data.device_id.strip()
        if not device_id:
            raise ValidationException("Device ID is required for registration", "DEVICE_ID_REQUIRED")

        if await UserRepository.get_by_email(db, email):
            raise ConflictException("User with this email already exists", "DUPLICATE_IDENTITY")
        if await UserRepository.get_by_whatsapp(db, whatsapp):
            raise ConflictException("User with this WhatsApp number already exists", "DUPLICATE_IDENTITY")

        now = get_utc_now()
        try:
            user = await UserRepository.create(
                db,
                email=email,
                whatsapp=whatsapp,
                hashed_password=hash_password(data.password),
                full_name=data.full_name,
                profile_pic=data.profile_pic,
                firebase_tokens=[data.firebase_token] if data.firebase_token else [],
                device_id=device_id,
                last_device_login=now,
                last_activity=now,
            )
        except IntegrityError:
            await db.rollback()
            raise ConflictException("User already exists", "DUPLICATE_IDENTITY")

        DeviceBindingService.ensure_not_blocked(user)
        logger.info(f"Registered user {user.id}")
        return await AuthService._issue(user, counter)

    @staticmethod
    async def register_mobile(db: AsyncSession, data: MobileRegisterRequest, counter: Optional[LiveUserCounter] = None) -> AuthResponse:
        """Luồng cũ: đăng ký hoặc đăng nhập theo số mobile."""
        mobile = data.mobile.strip()
        user = await UserRepository.get_by_mobile(db, mobile)
        now = get_utc_now()

        if user is None:
            device_id = (data.device_id or "").strip() or None
            try:
                user = await UserRepository.create(
                    db,
                    mobile=mobile,
                    email=data.email.lower() if data.email else None,
                    full_name=data.full_name,
                    profile_pic=data.profile_pic,
                    firebase_tokens=[data.firebase_token] if data.firebase_token else [],
                    device_id=device_id,
                    last_device_login=now if device_id else None,
                    last_activity=now,
                )
            except IntegrityError:
                await db.rollback()
                raise ConflictException("User already exists", "DUPLICATE_IDENTITY")
            DeviceBindingService.ensure_not_blocked(user)
            logger.info(f"Registered mobile user {user.id}")
            return await AuthService._issue(user, counter, is_registered=False)

        if data.full_name:
            user.full_name = data.full_name
        if data.email:
            user.email = data.email.lower()
        if data.profile_pic:
            user.profile_pic = data.profile_pic
        _remember_push_token(user, data.firebase_token)

        DeviceBindingService.evaluate_device_binding(user, data.device_id, allow_unbound_without_device=True, now=now)
        if not user.last_activity:
            user.last_activity = now
        # Lưu trước khi kiểm tra khóa để thiết bị vừa gán không mất theo rollback của request
        try:
            user = await UserRepository.save(db, user)
        except IntegrityError:
            await db.rollback()
            raise ConflictException("Duplicate value already exists", "DUPLICATE_IDENTITY")
        DeviceBindingService.ensure_not_blocked(user)
        return await AuthService._issue(user, counter, is_registered=True)

    @staticmethod
    async def send_otp(db: AsyncSession, whatsapp: str) -> Dict[str, Any]:
        """
        Gửi OTP qua WhatsApp; tạo tài khoản chỉ-OTP nếu số chưa tồn tại.
        Chỉ lưu hash của mã, và chỉ lưu sau khi provider gửi thành công.
        """
        normalized = AuthService._require_whatsapp(whatsapp)
        user = await UserRepository.get_by_whatsapp(db, normalized)
        if user is None:
            user = await UserRepository.create(db, whatsapp=normalized)
            logger.info(f"Created OTP-only account {user.id}")

        now = get_utc_now()
        if user.otp_sent_at and now < user.otp_sent_at + timedelta(seconds=settings.OTP_RESEND_SECONDS):
            wait = int((user.otp_sent_at + timedelta(seconds=settings.OTP_RESEND_SECONDS) - now).total_seconds()) + 1
            raise ValidationException(f"Please wait {wait} seconds before requesting a new OTP", "OTP_RESEND_TOO_SOON")

        otp_code = generate_otp_code(settings.OTP_LENGTH)
        sent = await WatiService.send_otp_message(normalized, otp_code)
        if not sent.get("success"):
            logger.warning(f"OTP delivery to {mask_number(normalized)} failed: {sent.get('error')}")
            raise DependencyException("Failed to send OTP")

        user.otp_code_hash = hash_password(otp_code)
        user.otp_expires_at = now + timedelta(minutes=settings.OTP_EXPIRY_MINUTES)
        user.otp_attempts = 0
        user.otp_sent_at = now
        await db.commit()
        logger.info(f"OTP sent to {mask_number(normalized)}")
        return {"whatsapp": mask_number(normalized), "expires_in_seconds": settings.OTP_EXPIRY_MINUTES * 60}

    @staticmethod
    async def verify_otp(db: AsyncSession, data: VerifyOtpRequest, counter: Optional[LiveUserCounter] = None) -> AuthResponse:
        normalized = AuthService._require_whatsapp(data.whatsapp)
        user = await UserRepository.get_by_whatsapp(db, normalized)
        if user is None or not user.otp_code_hash:
            raise ValidationException("No active OTP found", "OTP_NOT_FOUND")

        now = get_utc_now()
        if user.otp_expires_at is None or user.otp_expires_at < now:
            raise ValidationException("OTP expired", "OTP_EXPIRED")

        if user.otp_attempts >= settings.OTP_MAX_ATTEMPTS:
            user.otp_code_hash = None
            user.otp_expires_at = None
            await db.commit()
            raise ValidationException("Too many invalid attempts. Please request a new OTP", "OTP_ATTEMPTS_EXCEEDED")

        if not verify_password(str(data.otp), user.otp_code_hash):
            user.otp_attempts += 1
            await db.commit()
            raise AuthException("Invalid OTP", "INVALID_OTP")

        DeviceBindingService.evaluate_device_binding(user, data.device_id, allow_unbound_without_device=True, now=now)
        _remember_push_token(user, data.firebase_token)
        user.otp_code_hash = None
        user.otp_expires_at = None
        user.otp_attempts = 0
        user = await UserRepository.save(db, user)
        DeviceBindingService.ensure_not_blocked(user)
        return await AuthService._issue(user, counter)

    @staticmethod
    async def login(db: AsyncSession, data: LoginRequest, counter: Optional[LiveUserCounter] = None) -> AuthResponse:
        """Đăng nhập bằng mật khẩu; kiểm tra thiết bị ở chế độ nghiêm ngặt."""
        if data.email:
            user = await UserRepository.get_by_email(db, data.email)
        else:
            whatsapp = normalize_whatsapp_number(data.whatsapp) or data.whatsapp
            user = await UserRepository.get_by_whatsapp(db, whatsapp)

        if user is None:
            raise AuthException("Invalid credentials", "INVALID_CREDENTIALS")
        if not user.hashed_password:
            raise AuthException(
                "This account does not have a password set. Please contact admin.",
                "PASSWORD_NOT_SET",
            )
        if not verify_password(data.password, user.hashed_password):
            raise AuthException("Invalid credentials", "INVALID_CREDENTIALS")

        DeviceBindingService.evaluate_device_binding(user, data.device_id)
        # Thiết bị vừa gán được commit trước, kể cả khi tài khoản đang bị khóa
        user = await UserRepository.save(db, user)
        DeviceBindingService.ensure_not_blocked(user)
        _remember_push_token(user, data.firebase_token)
        user = await UserRepository.save(db, user)
        logger.info(f"User {user.id} logged in")
        return await AuthService._issue(user, counter)

    @staticmethod
    async def logout(user: User, counter: Optional[LiveUserCounter] = None) -> None:
        if counter is not None:
            await safe_presence_call(counter.decrement(user.id))
        logger.info(f"User {user.id} logged out")

    # ---- Khôi phục thiết bị tự phục vụ ----

    @staticmethod
    async def _get_by_email_or_404(db: AsyncSession, email: str) -> User:
        user = await UserRepository.get_by_email(db, email)
        if not user:
            raise NotFoundException("User not found", "USER_NOT_FOUND")
        return user

    @staticmethod
    async def confirm_device_mismatch_block(db: AsyncSession, email: str, device_id: str) -> User:
        user = await AuthService._get_by_email_or_404(db, email)
        return await DeviceBindingService.confirm_device_mismatch_block(db, user, device_id)

    @staticmethod
    async def create_penalty_order(db: AsyncSession, email: str, amount: Optional[int] = None) -> Dict[str, Any]:
        """Tạo order thanh toán phí phạt để mở khóa thiết bị."""
        user = await AuthService._get_by_email_or_404(db, email)
        amount = amount or settings.PENALTY_AMOUNT
        receipt = f"penalty_{str(user.id)[-6:]}_{str(int(time.time() * 1000))[-6:]}"
        order = await PaymentService.create_order(
            amount_minor=amount * 100,
            receipt=receipt,
            notes={"userId": str(user.id), "email": user.email, "type": "penalty"},
        )
        return {
            "order_id": order["id"],
            "amount": order.get("amount", amount * 100),
            "currency": order.get("currency", settings.PAYMENT_CURRENCY),
            "key_id": PaymentService.public_key_id(),
        }

    @staticmethod
    async def verify_penalty_payment(
        db: AsyncSession,
        email: str,
        order_id: str,
        payment_id: str,
        signature: str
    ) -> User:
        user = await AuthService._get_by_email_or_404(db, email)
        return await DeviceBindingService.pay_penalty_and_reset(db, user, order_id, payment_id, signature)
