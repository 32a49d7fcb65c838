import pytest

from app.dto.auth_dto import LoginRequest
from app.exceptions.base_exception import (
    AuthException,
    ConflictException,
    PaymentException,
    ValidationException,
)
from app.services.auth_service import AuthService
from app.services.device_binding_service import (
    ACCOUNT_BLOCKED_MESSAGE,
    DEVICE_MISMATCH_MESSAGE,
    DeviceBindingService,
    DeviceResetReason,
)
from app.services.payment_service import compute_signature
from conftest import TEST_PASSWORD


def _login(user, device_id):
    return LoginRequest(email=user.email, password=TEST_PASSWORD, device_id=device_id)


async def test_first_login_binds_device(db, make_user):
    user = await make_user()

    response = await AuthService.login(db, _login(user, "device-A"))

    assert response.access_token
    await db.refresh(user)
    assert user.device_id == "device-A"
    assert user.last_device_login is not None


async def test_login_from_other_device_is_rejected_and_binding_kept(db, make_user):
    user = await make_user(device_id="device-A")

    with pytest.raises(AuthException) as exc_info:
        await AuthService.login(db, _login(user, "device-B"))

    error = exc_info.value
    assert error.status_code == 403
    assert error.error_code == "DEVICE_MISMATCH"
    assert error.message == DEVICE_MISMATCH_MESSAGE
    assert error.to_dict()["isBlocked"] is True
    assert error.to_dict()["isDeviceMismatch"] is True

    await db.rollback()
    await db.refresh(user)
    assert user.device_id == "device-A"


async def test_bound_account_without_device_id_is_mismatch(db, make_user):
    user = await make_user(device_id="device-A")

    with pytest.raises(AuthException) as exc_info:
        await AuthService.login(db, _login(user, None))
    assert exc_info.value.error_code == "DEVICE_MISMATCH"


async def test_unbound_strict_login_requires_device_id(db, make_user):
    user = await make_user()

    with pytest.raises(ValidationException) as exc_info:
        await AuthService.login(db, _login(user, "  "))
    assert exc_info.value.error_code == "DEVICE_ID_REQUIRED"


def test_deferral_allowed_for_registration_flows():
    class Account:
        id = "u1"
        device_id = None

    account = Account()
    assert DeviceBindingService.evaluate_device_binding(account, None, allow_unbound_without_device=True) is False
    assert account.device_id is None


async def test_blocked_account_with_matching_device(db, make_user):
    user = await make_user(device_id="device-A", is_blocked=True)

    with pytest.raises(AuthException) as exc_info:
        await AuthService.login(db, _login(user, "device-A"))

    error = exc_info.value
    assert error.error_code == "ACCOUNT_BLOCKED"
    assert error.message == ACCOUNT_BLOCKED_MESSAGE
    assert error.to_dict()["isBlocked"] is True
    assert "isDeviceMismatch" not in error.to_dict()


async def test_device_check_runs_before_block_check(db, make_user):
    user = await make_user(device_id="device-A", is_blocked=True)

    with pytest.raises(AuthException) as exc_info:
        await AuthService.login(db, _login(user, "device-B"))
    assert exc_info.value.error_code == "DEVICE_MISMATCH"


async def test_blocked_unbound_account_keeps_new_binding(db, session_factory, make_user):
    from app.repositories.user_repository import UserRepository

    user = await make_user(is_blocked=True)
    user_id = user.id

    with pytest.raises(AuthException) as exc_info:
        await AuthService.login(db, _login(user, "device-Z"))
    assert exc_info.value.error_code == "ACCOUNT_BLOCKED"
    await db.rollback()

    async with session_factory() as other:
        stored = await UserRepository.get_by_id(other, user_id)
        assert stored.device_id == "device-Z"
        assert stored.last_device_login is not None

async def test_admin_reset_allows_new_device(db, make_user):
    user = await make_user(device_id="device-A", is_blocked=True, device_change_requested=True)

    await DeviceBindingService.reset_device_binding(db, user, DeviceResetReason.ADMIN_ACTION)

    assert user.device_id is None
    assert user.is_blocked is False
    assert user.device_change_requested is False
    assert user.device_change_requested_at is None

    await AuthService.login(db, _login(user, "device-B"))
    await db.refresh(user)
    assert user.device_id == "device-B"


async def test_reset_is_idempotent(db, make_user):
    user = await make_user(device_id="device-A")

    await DeviceBindingService.reset_device_binding(db, user, DeviceResetReason.ADMIN_ACTION)
    await DeviceBindingService.reset_device_binding(db, user, DeviceResetReason.ADMIN_ACTION)

    assert user.device_id is None
    assert user.is_blocked is False


async def test_confirm_mismatch_with_same_device_is_rejected(db, make_user):
    user = await make_user(device_id="device-A")

    with pytest.raises(ValidationException) as exc_info:
        await AuthService.confirm_device_mismatch_block(db, user.email, "device-A")
    assert exc_info.value.error_code == "NO_MISMATCH_DETECTED"
    await db.refresh(user)
    assert user.is_blocked is False


async def test_confirm_mismatch_blocks_account(db, make_user):
    user = await make_user(device_id="device-A")

    blocked = await AuthService.confirm_device_mismatch_block(db, user.email, "device-B")

    assert blocked.is_blocked is True
    assert blocked.device_id == "device-A"


async def test_penalty_with_bad_signature_changes_nothing(db, make_user):
    user = await make_user(device_id="device-A", is_blocked=True)

    with pytest.raises(PaymentException):
        await AuthService.verify_penalty_payment(db, user.email, "order_1", "pay_1", "bad-signature")

    await db.refresh(user)
    assert user.device_id == "device-A"
    assert user.is_blocked is True


async def test_penalty_with_valid_signature_resets_device(db, make_user):
    user = await make_user(device_id="device-A", is_blocked=True)
    signature = compute_signature("order_1", "pay_1", "rzp_test_secret")

    result = await AuthService.verify_penalty_payment(db, user.email, "order_1", "pay_1", signature)

    assert result.device_id is None
    assert result.is_blocked is False


async def test_device_change_request_blocks_until_approved(db, make_user):
    user = await make_user(device_id="device-A")

    await DeviceBindingService.request_device_change(db, user)
    assert user.device_change_requested is True
    assert user.is_blocked is True

    with pytest.raises(ConflictException) as exc_info:
        await DeviceBindingService.request_device_change(db, user)
    assert exc_info.value.error_code == "REQUEST_ALREADY_PENDING"
