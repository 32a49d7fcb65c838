import uuid

import pytest
from sqlalchemy import func, select

from app.dto.user_dto import AdminUserCreate
from app.exceptions.base_exception import NotFoundException, ValidationException
from app.models.user import User
from app.models.user_notification import UserNotification
from app.models.user_subscription import UserSubscription
from app.services.subscription_service import SubscriptionService
from app.services.user_service import UserService


async def _count(db, model, user_id):
    result = await db.execute(select(func.count()).select_from(model).where(model.user_id == user_id))
    return result.scalar_one()


async def test_delete_user_removes_subscriptions_and_deliveries(db, make_user, make_plan):
    user = await make_user()
    plan = await make_plan()
    await SubscriptionService.activate_subscription(db, user.id, plan.id)
    user_id = user.id
    assert await _count(db, UserSubscription, user_id) == 1
    assert await _count(db, UserNotification, user_id) == 1

    await UserService.delete_user(db, user_id)

    assert await _count(db, UserSubscription, user_id) == 0
    assert await _count(db, UserNotification, user_id) == 0
    result = await db.execute(select(User).where(User.id == user_id))
    assert result.scalars().first() is None


async def test_delete_user_leaves_other_users_alone(db, make_user, make_plan):
    plan = await make_plan()
    doomed = await make_user()
    kept = await make_user()
    await SubscriptionService.activate_subscription(db, doomed.id, plan.id)
    await SubscriptionService.activate_subscription(db, kept.id, plan.id)
    kept_id = kept.id

    await UserService.delete_user(db, doomed.id)

    assert await _count(db, UserSubscription, kept_id) == 1
    assert await _count(db, UserNotification, kept_id) == 1


async def test_delete_unknown_user(db):
    with pytest.raises(NotFoundException):
        await UserService.delete_user(db, uuid.uuid4())


async def test_create_user_needs_an_identity(db):
    with pytest.raises(ValidationException) as exc_info:
        await UserService.create_user(db, AdminUserCreate(full_name="Nobody"))
    assert exc_info.value.error_code == "IDENTITY_REQUIRED"
    assert exc_info.value.status_code == 400


async def test_allow_new_device_without_request(db, make_user):
    user = await make_user(device_id="device-A")

    with pytest.raises(ValidationException) as exc_info:
        await UserService.allow_new_device(db, user.id)
    assert exc_info.value.error_code == "NO_PENDING_REQUEST"
