import time
from unittest.mock import patch

from firebase_admin import messaging

from app.configs.settings import settings
from app.services.push_service import PushService

# Lấy bản gốc trước khi fixture autouse thay PushService.send bằng mock
ORIGINAL_SEND = PushService.send


async def test_unconfigured_provider_fails_without_raising():
    with patch("app.services.push_service._get_firebase_app", return_value=None):
        result = await ORIGINAL_SEND("token", "Title", "Body")

    assert result.success is False
    assert result.is_invalid_token is False


async def test_successful_send():
    with patch("app.services.push_service._get_firebase_app", return_value=object()), \
            patch("app.services.push_service.messaging.send", return_value="projects/x/messages/1") as send:
        result = await ORIGINAL_SEND("token", "Title", "Body")

    assert result.success is True
    message = send.call_args.args[0]
    assert message.token == "token"
    assert message.notification.title == "Title"


async def test_unregistered_token_is_flagged_invalid():
    error = messaging.UnregisteredError("Requested entity was not found.")
    with patch("app.services.push_service._get_firebase_app", return_value=object()), \
            patch("app.services.push_service.messaging.send", side_effect=error):
        result = await ORIGINAL_SEND("stale-token", "Title", "Body")

    assert result.success is False
    assert result.is_invalid_token is True


async def test_slow_provider_times_out(monkeypatch):
    monkeypatch.setattr(settings, "PROVIDER_TIMEOUT_SECONDS", 0.05)

    def slow_send(message, app=None):
        time.sleep(0.3)
        return "late"

    with patch("app.services.push_service._get_firebase_app", return_value=object()), \
            patch("app.services.push_service.messaging.send", side_effect=slow_send):
        result = await ORIGINAL_SEND("token", "Title", "Body")

    assert result.success is False
    assert result.error == "timeout"


async def test_unexpected_error_is_reported_as_failure():
    with patch("app.services.push_service._get_firebase_app", return_value=object()), \
            patch("app.services.push_service.messaging.send", side_effect=RuntimeError("socket closed")):
        result = await ORIGINAL_SEND("token", "Title", "Body")

    assert result.success is False
    assert result.is_invalid_token is False
