from unittest.mock import AsyncMock, patch

import pytest

from app.exceptions.base_exception import DependencyException, PaymentException
from app.services.payment_service import PaymentService, compute_signature, verify_signature

SECRET = "rzp_test_secret"


def test_valid_signature_verifies():
    signature = compute_signature("order_ABC", "pay_XYZ", SECRET)
    assert verify_signature("order_ABC", "pay_XYZ", signature, SECRET) is True


def test_signature_is_hex_sha256():
    signature = compute_signature("order_1", "pay_1", SECRET)
    assert len(signature) == 64
    int(signature, 16)


@pytest.mark.parametrize("position", [0, 10, 63])
def test_single_character_change_fails(position):
    signature = compute_signature("order_ABC", "pay_XYZ", SECRET)
    replacement = "0" if signature[position] != "0" else "1"
    tampered = signature[:position] + replacement + signature[position + 1:]
    assert verify_signature("order_ABC", "pay_XYZ", tampered, SECRET) is False


def test_signature_bound_to_order_and_payment():
    signature = compute_signature("order_ABC", "pay_XYZ", SECRET)
    assert verify_signature("order_ABD", "pay_XYZ", signature, SECRET) is False
    assert verify_signature("order_ABC", "pay_XYY", signature, SECRET) is False
    assert verify_signature("order_ABC", "pay_XYZ", signature, "other-secret") is False


def test_empty_signature_rejected():
    assert verify_signature("order_ABC", "pay_XYZ", "", SECRET) is False


def test_verify_payment_raises_on_mismatch():
    with pytest.raises(PaymentException) as exc_info:
        PaymentService.verify_payment("order_ABC", "pay_XYZ", "deadbeef")
    assert exc_info.value.error_code == "PAYMENT_VERIFICATION_FAILED"
    assert exc_info.value.status_code == 400


def test_verify_payment_accepts_configured_secret():
    signature = compute_signature("order_ABC", "pay_XYZ", SECRET)
    PaymentService.verify_payment("order_ABC", "pay_XYZ", signature)


def test_missing_secret_is_not_configured(monkeypatch):
    from app.configs.settings import settings

    monkeypatch.setattr(settings, "RAZORPAY_KEY_SECRET", None)
    with pytest.raises(PaymentException) as exc_info:
        PaymentService.verify_payment("order_ABC", "pay_XYZ", "anything")
    assert exc_info.value.error_code == "PAYMENT_NOT_CONFIGURED"
    assert exc_info.value.status_code == 503


async def test_fetch_order_returns_gateway_order():
    order = {"id": "order_ABC", "notes": {"planId": "p"}}
    with patch.object(PaymentService, "_fetch_order_with_retry", new=AsyncMock(return_value=order)) as fetch:
        assert await PaymentService.fetch_order("order_ABC") == order
    fetch.assert_awaited_once_with("order_ABC")


async def test_fetch_order_failure_is_dependency_error():
    failing = AsyncMock(side_effect=TimeoutError())
    with patch.object(PaymentService, "_fetch_order_with_retry", new=failing):
        with pytest.raises(DependencyException):
            await PaymentService.fetch_order("order_ABC")
