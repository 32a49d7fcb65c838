import asyncio
import hashlib
import hmac
import logging
from typing import Any, Dict, Optional

from tenacity import retry, stop_after_attempt, wait_exponential

from app.configs.settings import settings
from app.exceptions.base_exception import DependencyException, PaymentException

logger = logging.getLogger(__name__)

PAYMENT_PROVIDER = "razorpay"

payment_retry = retry(
    stop=stop_after_attempt(3), wait=wait_exponential(multiplier=1, min=1, max=5), reraise=True
)


def compute_signature(order_id: str, payment_id: str, secret: str) -> str:
    """HMAC-SHA256(secret, "order_id|payment_id") dạng hex."""
    return hmac.new(
        secret.encode("utf-8"),
        f"{order_id}|{payment_id}".encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def verify_signature(order_id: str, payment_id: str, signature: str, secret: str) -> bool:
    """
    Kiểm tra chữ ký callback của cổng thanh toán.

    Hàm thuần: cùng đầu vào luôn cho cùng kết quả, không gọi ra ngoài.
    """
    if not signature:
        return False
    expected = compute_signature(order_id, payment_id, secret)
    return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))


class PaymentService:
    """
    Bao bọc cổng thanh toán Razorpay: tạo order và xác minh chữ ký thanh toán.
    """

    @staticmethod
    def _require_secret() -> str:
        if not settings.RAZORPAY_KEY_ID or not settings.RAZORPAY_KEY_SECRET:
            raise PaymentException(
                message="Payment gateway is not configured",
                error_code="PAYMENT_NOT_CONFIGURED",
                status_code=503,
            )
        return settings.RAZORPAY_KEY_SECRET

    @staticmethod
    def verify_payment(order_id: str, payment_id: str, signature: str) -> None:
        """
        Raise PaymentException nếu chữ ký không hợp lệ. Không thay đổi trạng thái nào.
        """
        secret = PaymentService._require_secret()
        if not verify_signature(order_id, payment_id, signature, secret):
            logger.warning(f"Payment signature mismatch for order {order_id}")
            raise PaymentException(message="Payment verification failed", error_code="PAYMENT_VERIFICATION_FAILED")

    @staticmethod
    @payment_retry
    async def _create_order_with_retry(payload: Dict[str, Any]) -> Dict[str, Any]:
        import razorpay

        client = razorpay.Client(auth=(settings.RAZORPAY_KEY_ID, settings.RAZORPAY_KEY_SECRET))
        return await asyncio.wait_for(
            asyncio.to_thread(client.order.create, data=payload),
            timeout=settings.PROVIDER_TIMEOUT_SECONDS,
        )

    @staticmethod
    async def create_order(
        amount_minor: int,
        receipt: str,
        notes: Optional[Dict[str, str]] = None,
        currency: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Tạo order trên cổng thanh toán.

        Args:
            amount_minor: Số tiền theo đơn vị nhỏ nhất (paise)
            receipt: Mã biên nhận, tối đa 40 ký tự
            notes: Metadata đính kèm order
        """
        PaymentService._require_secret()
        payload = {
            "amount": int(amount_minor),
            "currency": currency or settings.PAYMENT_CURRENCY,
            "receipt": receipt[:40],
            "notes": notes or {},
        }
        try:
            order = await PaymentService._create_order_with_retry(payload)
        except Exception as e:
            logger.error(f"Failed to create payment order {receipt}: {e}", exc_info=True)
            raise DependencyException(message="Failed to create payment order")
        logger.info(f"Created payment order {order.get('id')} for receipt {receipt}")
        return order

    @staticmethod
    @payment_retry
    async def _fetch_order_with_retry(order_id: str) -> Dict[str, Any]:
        import razorpay

        client = razorpay.Client(auth=(settings.RAZORPAY_KEY_ID, settings.RAZORPAY_KEY_SECRET))
        return await asyncio.wait_for(
            asyncio.to_thread(client.order.fetch, order_id),
            timeout=settings.PROVIDER_TIMEOUT_SECONDS,
        )

    @staticmethod
    async def fetch_order(order_id: str) -> Dict[str, Any]:
        """Đọc lại order từ cổng thanh toán (dùng notes để đối chiếu user / gói)."""
        PaymentService._require_secret()
        try:
            return await PaymentService._fetch_order_with_retry(order_id)
        except Exception as e:
            logger.error(f"Failed to fetch payment order {order_id}: {e}", exc_info=True)
            raise DependencyException(message="Failed to fetch payment order")

    @staticmethod
    def public_key_id() -> Optional[str]:
        return settings.RAZORPAY_KEY_ID
