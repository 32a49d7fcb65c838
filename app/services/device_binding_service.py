import enum
import logging
from datetime import datetime
from typing import Optional

from fastapi import status
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions.base_exception import AuthException, ConflictException, ValidationException
from app.models.user import User
from app.services.payment_service import PaymentService
from app.utils.time import get_utc_now

logger = logging.getLogger(__name__)

DEVICE_MISMATCH_MESSAGE = (
    "Login failed. This account is registered to another device. Contact admin to reset device."
)
ACCOUNT_BLOCKED_MESSAGE = "Your account has been blocked. Contact admin."


class DeviceResetReason(str, enum.Enum):
    ADMIN_ACTION = "ADMIN_ACTION"
    PENALTY_PAYMENT = "PENALTY_PAYMENT"


class DeviceBindingService:
    """
    Chính sách một thiết bị cho mỗi tài khoản.

    Khi thiết bị không khớp, ràng buộc KHÔNG bao giờ được tự sửa: chỉ admin
    (reset_device_binding với ADMIN_ACTION) hoặc thanh toán phí phạt đã xác minh
    (PENALTY_PAYMENT) mới gỡ được thiết bị cũ.

    Các hàm ở đây chỉ thay đổi đối tượng User trong session; hàm gọi chịu trách nhiệm commit,
    trừ các thao tác độc lập (confirm block, request change, reset) tự commit.
    """

    @staticmethod
    def evaluate_device_binding(
        user: User,
        device_id: Optional[str],
        allow_unbound_without_device: bool = False,
        now: Optional[datetime] = None
    ) -> bool:
        """
        Kiểm tra thiết bị cho một lần đăng nhập / đăng ký.

        Args:
            user: Tài khoản đang xác thực
            device_id: ID thiết bị client gửi lên (có thể rỗng)
            allow_unbound_without_device: True với luồng đăng ký / OTP, cho phép tạm
                chưa gắn thiết bị khi client chưa gửi device_id

        Returns:
            True nếu lần này vừa gắn thiết bị mới cho tài khoản.

        Raises:
            ValidationException: DEVICE_ID_REQUIRED
            AuthException: DEVICE_MISMATCH (kèm isBlocked, isDeviceMismatch)
        """
        now = now or get_utc_now()
        device_id = (device_id or "").strip() or None

        if not user.device_id:
            if not device_id:
                if allow_unbound_without_device:
                    return False
                raise ValidationException(
                    "Device ID is required for login. Please contact admin if you need assistance.",
                    "DEVICE_ID_REQUIRED",
                )
            user.device_id = device_id
            user.last_device_login = now
            user.last_activity = now
            logger.info(f"Bound device to user {user.id}")
            return True

        if device_id != user.device_id:
            logger.warning(f"Device mismatch for user {user.id}")
            raise AuthException(
                DEVICE_MISMATCH_MESSAGE,
                "DEVICE_MISMATCH",
                status_code=status.HTTP_403_FORBIDDEN,
                is_blocked=True,
                is_device_mismatch=True,
            )

        user.last_device_login = now
        user.last_activity = now
        return False

    @staticmethod
    def ensure_not_blocked(user: User) -> None:
        """Kiểm tra khóa, chạy sau bước kiểm tra thiết bị ở mọi luồng đăng nhập / đăng ký."""
        if user.is_blocked:
            raise AuthException(
                ACCOUNT_BLOCKED_MESSAGE,
                "ACCOUNT_BLOCKED",
                status_code=status.HTTP_403_FORBIDDEN,
                is_blocked=True,
            )

    @staticmethod
    async def confirm_device_mismatch_block(db: AsyncSession, user: User, device_id: str) -> User:
        """Khóa tài khoản khi người dùng xác nhận thiết bị không khớp. Thiết bị khớp thì từ chối."""
        if user.device_id == device_id:
            raise ValidationException("Device ID matches. No mismatch detected.", "NO_MISMATCH_DETECTED")
        user.is_blocked = True
        await db.commit()
        await db.refresh(user)
        logger.info(f"User {user.id} blocked after confirmed device mismatch")
        return user

    @staticmethod
    async def request_device_change(db: AsyncSession, user: User) -> User:
        """Người dùng xin đổi thiết bị: đánh dấu yêu cầu và khóa ngay cho tới khi admin duyệt."""
        if user.device_change_requested:
            raise ConflictException("A device change request is already pending", "REQUEST_ALREADY_PENDING")
        user.device_change_requested = True
        user.device_change_requested_at = get_utc_now()
        user.is_blocked = True
        await db.commit()
        await db.refresh(user)
        logger.info(f"User {user.id} requested a device change")
        return user

    @staticmethod
    async def reset_device_binding(db: AsyncSession, user: User, reason: DeviceResetReason) -> User:
        """
        Gỡ thiết bị, xóa yêu cầu đổi thiết bị đang chờ và mở khóa. Gọi nhiều lần vẫn cho
        cùng kết quả.
        """
        user.device_id = None
        user.last_device_login = None
        user.device_change_requested = False
        user.device_change_requested_at = None
        user.is_blocked = False
        await db.commit()
        await db.refresh(user)
        logger.info(f"Device binding reset for user {user.id} (reason={reason.value})")
        return user

    @staticmethod
    async def pay_penalty_and_reset(
        db: AsyncSession,
        user: User,
        order_id: str,
        payment_id: str,
        signature: str
    ) -> User:
        """Chỉ reset khi chữ ký thanh toán phí phạt hợp lệ; sai chữ ký thì không đổi gì."""
        PaymentService.verify_payment(order_id, payment_id, signature)
        return await DeviceBindingService.reset_device_binding(db, user, DeviceResetReason.PENALTY_PAYMENT)
