from datetime import datetime
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select

from app.dto.subscription_dto import BulkAssignRow, VerifyPaymentRequest
from app.exceptions.base_exception import (
    ConflictException,
    ForbiddenException,
    NotFoundException,
    PaymentException,
    UsageLimitException,
)
from app.models.notification import Notification, NotificationType
from app.models.user_subscription import UserSubscription
from app.repositories.subscription_repository import SubscriptionRepository
from app.services.payment_service import compute_signature
from app.services.subscription_service import SubscriptionService


async def _subscriptions(db, user_id):
    result = await db.execute(select(UserSubscription).where(UserSubscription.user_id == user_id))
    return result.scalars().all()


async def test_activation_creates_single_active_subscription(db, make_user, make_plan):
    user = await make_user()
    plan = await make_plan(duration_in_months=3)

    subscription = await SubscriptionService.activate_subscription(db, user.id, plan.id, "pay_1", "razorpay")

    assert subscription.is_active is True
    assert subscription.plan.id == plan.id
    assert subscription.usage_count == 0
    assert subscription.expiry_date > subscription.start_date
    await db.refresh(user)
    assert user.active_subscription_id == subscription.id


async def test_resubscribe_supersedes_previous(db, make_user, make_plan):
    user = await make_user()
    monthly = await make_plan(title="Monthly", duration_in_months=1)
    yearly = await make_plan(title="Yearly", duration_in_months=12)

    first = await SubscriptionService.activate_subscription(db, user.id, monthly.id)
    second = await SubscriptionService.activate_subscription(db, user.id, yearly.id)

    rows = await _subscriptions(db, user.id)
    active = [row for row in rows if row.is_active]
    assert len(rows) == 2
    assert [row.id for row in active] == [second.id]
    await db.refresh(first)
    assert first.is_active is False
    await db.refresh(user)
    assert user.active_subscription_id == second.id


async def test_expiry_uses_month_end_clamping(db, make_user, make_plan):
    user = await make_user()
    plan = await make_plan(duration_in_months=1)

    with patch("app.services.subscription_service.get_utc_now", return_value=datetime(2024, 1, 31, 8, 0)):
        subscription = await SubscriptionService.activate_subscription(db, user.id, plan.id)

    assert subscription.expiry_date == datetime(2024, 2, 29, 8, 0)
    assert subscription.usage_reset_at == datetime(2024, 2, 1)


async def test_activation_sends_activated_notification(db, make_user, make_plan, push_sender):
    user = await make_user(firebase_tokens=["token-1"])
    plan = await make_plan(title="Gold")

    await SubscriptionService.activate_subscription(db, user.id, plan.id)

    result = await db.execute(select(Notification))
    notifications = result.scalars().all()
    assert len(notifications) == 1
    assert notifications[0].type == NotificationType.SUBSCRIPTION_ACTIVATED.value
    assert notifications[0].title == "Subscription Activated"
    assert "Gold" in notifications[0].message
    push_sender.assert_awaited_once()


async def test_notification_failure_does_not_undo_activation(db, make_user, make_plan):
    user = await make_user()
    plan = await make_plan()

    with patch(
        "app.services.notification_service.NotificationService.create_system_notification",
        new=AsyncMock(side_effect=RuntimeError("provider down")),
    ):
        subscription = await SubscriptionService.activate_subscription(db, user.id, plan.id)

    assert subscription.is_active is True
    rows = await _subscriptions(db, user.id)
    assert len(rows) == 1


async def test_inactive_plan_cannot_be_activated(db, make_user, make_plan):
    user = await make_user()
    plan = await make_plan(is_active=False)

    with pytest.raises(NotFoundException) as exc_info:
        await SubscriptionService.activate_subscription(db, user.id, plan.id)
    assert exc_info.value.error_code == "PLAN_NOT_FOUND"


async def test_losing_concurrent_activation_gets_conflict(db, make_user, make_plan):
    user = await make_user()
    plan = await make_plan()
    existing = await SubscriptionService.activate_subscription(db, user.id, plan.id)
    existing_id, user_id, plan_id = existing.id, user.id, plan.id

    # Bên thắng đã chèn gói active sau khi bên thua chạy bước tắt gói cũ
    with patch.object(SubscriptionRepository, "deactivate_active_for_user", new=AsyncMock(return_value=0)):
        with pytest.raises(ConflictException) as exc_info:
            await SubscriptionService.activate_subscription(db, user_id, plan_id)
    assert exc_info.value.error_code == "CONCURRENT_ACTIVATION_CONFLICT"

    rows = await _subscriptions(db, user_id)
    assert [row.id for row in rows if row.is_active] == [existing_id]


async def test_verify_payment_rejects_bad_signature_without_changes(db, make_user, make_plan):
    user = await make_user()
    plan = await make_plan()
    data = VerifyPaymentRequest(
        plan_id=plan.id,
        razorpay_order_id="order_1",
        razorpay_payment_id="pay_1",
        razorpay_signature="0" * 64,
    )

    with pytest.raises(PaymentException):
        await SubscriptionService.verify_and_activate(db, user, data)
    assert await _subscriptions(db, user.id) == []


def _signed_payment(plan, order_id="order_1", payment_id="pay_1"):
    return VerifyPaymentRequest(
        plan_id=plan.id,
        razorpay_order_id=order_id,
        razorpay_payment_id=payment_id,
        razorpay_signature=compute_signature(order_id, payment_id, "rzp_test_secret"),
    )


def _order_for(user, plan):
    order = {"id": "order_1", "notes": {"userId": str(user.id), "planId": str(plan.id)}}
    return patch(
        "app.services.subscription_service.PaymentService.fetch_order",
        new=AsyncMock(return_value=order),
    )


async def test_verify_payment_activates_with_payment_reference(db, make_user, make_plan):
    user = await make_user()
    plan = await make_plan()

    with _order_for(user, plan):
        subscription = await SubscriptionService.verify_and_activate(db, user, _signed_payment(plan))

    assert subscription.payment_id == "pay_1"
    assert subscription.payment_provider == "razorpay"


async def test_same_payment_cannot_activate_twice(db, make_user, make_plan):
    user = await make_user()
    plan = await make_plan()
    user_id = user.id

    with _order_for(user, plan):
        await SubscriptionService.verify_and_activate(db, user, _signed_payment(plan))
        with pytest.raises(ConflictException) as exc_info:
            await SubscriptionService.verify_and_activate(db, user, _signed_payment(plan))
    assert exc_info.value.error_code == "PAYMENT_ALREADY_USED"

    rows = await _subscriptions(db, user_id)
    assert len(rows) == 1


async def test_payment_for_cheaper_plan_cannot_activate_another(db, make_user, make_plan):
    user = await make_user()
    cheap = await make_plan(discounted_price=99)
    premium = await make_plan(discounted_price=9999, duration_in_months=12)

    with _order_for(user, cheap):
        with pytest.raises(PaymentException) as exc_info:
            await SubscriptionService.verify_and_activate(db, user, _signed_payment(premium))
    assert exc_info.value.error_code == "PAYMENT_ORDER_MISMATCH"
    assert await _subscriptions(db, user.id) == []


async def test_order_of_another_user_is_rejected(db, make_user, make_plan):
    owner = await make_user()
    other = await make_user()
    plan = await make_plan()

    with _order_for(owner, plan):
        with pytest.raises(PaymentException) as exc_info:
            await SubscriptionService.verify_and_activate(db, other, _signed_payment(plan))
    assert exc_info.value.error_code == "PAYMENT_ORDER_MISMATCH"


async def test_subscription_order_uses_discounted_price(db, make_user, make_plan):
    user = await make_user()
    plan = await make_plan(discounted_price=299)
    create_order = AsyncMock(return_value={"id": "order_XYZ", "amount": 29900, "currency": "INR"})

    with patch("app.services.subscription_service.PaymentService.create_order", new=create_order):
        order = await SubscriptionService.create_subscription_order(db, user, plan.id)

    kwargs = create_order.await_args.kwargs
    assert kwargs["amount_minor"] == 29900
    assert kwargs["receipt"].startswith("sub_")
    assert kwargs["notes"] == {"userId": str(user.id), "planId": str(plan.id)}
    assert order.order_id == "order_XYZ"


async def test_bulk_assign_reports_each_row(db, admin, make_user, make_plan):
    user = await make_user(email="bulk@example.com")
    await make_plan(code="GOLD")

    result = await SubscriptionService.bulk_assign(db, admin, [
        BulkAssignRow(email="bulk@example.com", plan_code="gold"),
        BulkAssignRow(email="missing@example.com", plan_code="GOLD"),
        BulkAssignRow(email="bulk@example.com", plan_code="NOPE"),
    ])

    assert result.total == 3
    assert result.succeeded == 1
    assert result.failed == 2
    assert result.results[0].success is True
    assert result.results[1].message == "User not found"
    rows = await _subscriptions(db, user.id)
    assert len(rows) == 1
    assert rows[0].payment_provider == "bulk_import"


async def test_gate_requires_active_subscription(db, make_user):
    user = await make_user()

    with pytest.raises(ForbiddenException) as exc_info:
        await SubscriptionService.require_active_subscription(db, user.id)
    assert exc_info.value.error_code == "SUBSCRIPTION_REQUIRED"


async def test_daily_usage_limit(db, make_user, make_plan):
    user = await make_user()
    plan = await make_plan()
    await SubscriptionService.activate_subscription(db, user.id, plan.id)
    subscription = await SubscriptionService.require_active_subscription(db, user.id)

    first = await SubscriptionService.consume_usage(db, subscription, daily_limit=2)
    second = await SubscriptionService.consume_usage(db, subscription, daily_limit=2)
    assert (first.usage_count, first.remaining) == (1, 1)
    assert (second.usage_count, second.remaining) == (2, 0)

    with pytest.raises(UsageLimitException):
        await SubscriptionService.consume_usage(db, subscription, daily_limit=2)


async def test_get_my_subscription_days_left(db, make_user, make_plan):
    user = await make_user()
    plan = await make_plan(title="Quarterly", duration_in_months=3)
    await SubscriptionService.activate_subscription(db, user.id, plan.id)

    mine = await SubscriptionService.get_my_subscription(db, user.id)

    assert mine.plan_title == "Quarterly"
    assert mine.is_active is True
    assert 88 <= mine.days_left <= 93


async def test_earnings_only_count_paid_subscriptions(db, make_user, make_plan):
    plan = await make_plan(discounted_price=500)
    paid_user = await make_user()
    manual_user = await make_user()
    await SubscriptionService.activate_subscription(db, paid_user.id, plan.id, "pay_1", "razorpay")
    await SubscriptionService.activate_subscription(db, manual_user.id, plan.id, payment_provider="manual")

    earnings = await SubscriptionService.get_earnings(db)
    bestsellers = await SubscriptionService.get_bestseller_plans(db)

    assert earnings.total_earnings == 500
    assert earnings.today_earnings == 500
    assert bestsellers.bestseller_plan.purchase_count == 2
