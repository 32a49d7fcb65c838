from fastapi import status
from typing import Any, Dict, Optional

class AppException(Exception):
    """
    Exception cơ sở cho tất cả các exception trong ứng dụng
    """
    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str = "INTERNAL_ERROR",
        extra: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        # Các cờ bổ sung trả về cho client (vd isBlocked, isDeviceMismatch)
        self.extra = extra or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        content = {"message": self.message, "error_code": self.error_code}
        content.update(self.extra)
        return content

class ValidationException(AppException):
    """Exception khi dữ liệu đầu vào không hợp lệ"""
    def __init__(self, message: str = "Invalid input", error_code: str = "VALIDATION_ERROR"):
        super().__init__(message=message, status_code=status.HTTP_400_BAD_REQUEST, error_code=error_code)

class NotFoundException(AppException):
    """Exception khi không tìm thấy resource"""
    def __init__(self, message: str = "Resource not found", error_code: str = "NOT_FOUND"):
        super().__init__(message=message, status_code=status.HTTP_404_NOT_FOUND, error_code=error_code)

class ConflictException(AppException):
    """Exception khi trạng thái hiện tại xung đột với yêu cầu"""
    def __init__(self, message: str = "Conflict", error_code: str = "CONFLICT"):
        super().__init__(message=message, status_code=status.HTTP_409_CONFLICT, error_code=error_code)

class AuthException(AppException):
    """
    Exception cho lỗi xác thực / thiết bị.

    is_blocked và is_device_mismatch được trả kèm trong body để app mobile
    biết khi nào cần hiển thị màn hình thanh toán phí mở khóa.
    """
    def __init__(
        self,
        message: str = "Unauthorized",
        error_code: str = "UNAUTHORIZED",
        status_code: int = status.HTTP_401_UNAUTHORIZED,
        is_blocked: bool = False,
        is_device_mismatch: bool = False
    ):
        extra = {}
        if is_blocked:
            extra["isBlocked"] = True
        if is_device_mismatch:
            extra["isDeviceMismatch"] = True
        super().__init__(message=message, status_code=status_code, error_code=error_code, extra=extra)
        self.is_blocked = is_blocked
        self.is_device_mismatch = is_device_mismatch

class ForbiddenException(AppException):
    """Exception khi bị cấm truy cập"""
    def __init__(self, message: str = "Forbidden", error_code: str = "FORBIDDEN"):
        super().__init__(message=message, status_code=status.HTTP_403_FORBIDDEN, error_code=error_code)

class PaymentException(AppException):
    """Exception khi xác minh thanh toán thất bại hoặc chưa cấu hình cổng thanh toán"""
    def __init__(
        self,
        message: str = "Payment verification failed",
        error_code: str = "PAYMENT_VERIFICATION_FAILED",
        status_code: int = status.HTTP_400_BAD_REQUEST
    ):
        super().__init__(message=message, status_code=status_code, error_code=error_code)

class DependencyException(AppException):
    """Exception khi gọi dịch vụ bên ngoài bị lỗi"""
    def __init__(self, message: str = "External service error", error_code: str = "DEPENDENCY_ERROR"):
        super().__init__(message=message, status_code=status.HTTP_502_BAD_GATEWAY, error_code=error_code)

class UsageLimitException(AppException):
    """Exception khi người dùng vượt hạn mức sử dụng trong ngày"""
    def __init__(self, message: str = "Daily usage limit reached", error_code: str = "USAGE_LIMIT_EXCEEDED"):
        super().__init__(message=message, status_code=status.HTTP_429_TOO_MANY_REQUESTS, error_code=error_code)
