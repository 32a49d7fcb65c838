import pytest
from pydantic import ValidationError
from sqlalchemy import select

from app.dto.notification_dto import NotificationCreate, SendNotificationRequest
from app.exceptions.base_exception import NotFoundException, ValidationException
from app.models.notification import NotificationStatus
from app.models.user_notification import DeliveryStatus, UserNotification
from app.services.notification_service import NotificationService
from app.services.push_service import PushResult


async def _deliveries(db, notification_id):
    result = await db.execute(
        select(UserNotification).where(UserNotification.notification_id == notification_id)
    )
    return result.scalars().all()


async def _draft(db, title="Hello"):
    return await NotificationService.create_notification(db, NotificationCreate(title=title, message="World"))


async def test_user_without_tokens_is_failed(db, make_user, push_sender):
    user = await make_user(firebase_tokens=[])
    notification = await _draft(db)

    report = await NotificationService.send_notification(db, notification.id, "CUSTOM", [user.id])

    assert (report.processed, report.sent, report.failed) == (1, 0, 1)
    push_sender.assert_not_awaited()
    deliveries = await _deliveries(db, notification.id)
    assert deliveries[0].status == DeliveryStatus.FAILED.value


async def test_any_successful_token_marks_sent(db, make_user, push_sender):
    user = await make_user(firebase_tokens=["bad", "good"])
    push_sender.side_effect = [PushResult(success=False, error="boom"), PushResult(success=True)]
    notification = await _draft(db)

    report = await NotificationService.send_notification(db, notification.id, "CUSTOM", [user.id])

    assert report.sent == 1
    delivery = (await _deliveries(db, notification.id))[0]
    assert delivery.status == DeliveryStatus.SENT.value
    assert delivery.sent_at is not None
    assert push_sender.await_count == 2


async def test_invalid_tokens_are_removed(db, make_user, push_sender):
    user = await make_user(firebase_tokens=["stale", "fresh"])

    async def fake_send(token, title, body):
        if token == "stale":
            return PushResult(success=False, is_invalid_token=True, error="unregistered")
        return PushResult(success=True)

    push_sender.side_effect = fake_send
    notification = await _draft(db)

    await NotificationService.send_notification(db, notification.id, "CUSTOM", [user.id])

    await db.refresh(user)
    assert user.firebase_tokens == ["fresh"]


async def test_send_to_all_users(db, make_user):
    first = await make_user(firebase_tokens=["t1"])
    second = await make_user(firebase_tokens=["t2"])
    notification = await _draft(db)

    report = await NotificationService.send_notification(db, notification.id, "ALL")

    assert report.processed == 2
    assert report.sent == 2
    recipients = {delivery.user_id for delivery in await _deliveries(db, notification.id)}
    assert recipients == {first.id, second.id}
    await db.refresh(notification)
    assert notification.status == NotificationStatus.SENT.value


async def test_whatsapp_pass_uses_whatsapp_number(db, make_user, whatsapp_sender):
    user = await make_user(whatsapp="919876543210", firebase_tokens=["t1"])
    notification = await _draft(db, title="Offer")

    await NotificationService.send_notification(db, notification.id, "CUSTOM", [user.id], send_whatsapp=True)

    whatsapp_sender.assert_awaited_once()
    assert whatsapp_sender.await_args.args[0] == "919876543210"
    delivery = (await _deliveries(db, notification.id))[0]
    assert delivery.whatsapp_status == DeliveryStatus.SENT.value


async def test_system_notifications_skip_whatsapp(db, make_user, whatsapp_sender):
    user = await make_user(firebase_tokens=["t1"])
    notification = await _draft(db)
    await NotificationService.send_notification(db, notification.id, "CUSTOM", [user.id])

    report = await NotificationService.deliver_pending_whatsapp(db, notification.id)

    assert report.processed == 0
    whatsapp_sender.assert_not_awaited()


async def test_dispatch_is_deduplicated_per_user(db, make_user):
    user = await make_user()
    notification = await _draft(db)

    await NotificationService.dispatch(db, notification, [user.id, user.id])

    assert len(await _deliveries(db, notification.id)) == 1


async def test_custom_target_requires_user_ids():
    with pytest.raises(ValidationError):
        SendNotificationRequest(target="CUSTOM")


async def test_no_recipients_is_validation_error(db):
    notification = await _draft(db)

    with pytest.raises(ValidationException):
        await NotificationService.send_notification(db, notification.id, "ALL")


async def test_send_unknown_notification(db):
    import uuid

    with pytest.raises(NotFoundException):
        await NotificationService.send_notification(db, uuid.uuid4(), "ALL")


async def test_mark_read_sets_timestamp_once(db, make_user):
    user = await make_user(firebase_tokens=["t1"])
    notification = await _draft(db)
    await NotificationService.send_notification(db, notification.id, "CUSTOM", [user.id])
    delivery = (await _deliveries(db, notification.id))[0]

    first = await NotificationService.mark_read(db, user.id, delivery.id)
    read_at = first.read_at
    second = await NotificationService.mark_read(db, user.id, delivery.id)

    assert read_at is not None
    assert second.read_at == read_at
