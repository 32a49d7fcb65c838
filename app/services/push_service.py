import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

import firebase_admin
from firebase_admin import credentials, messaging
from firebase_admin import exceptions as firebase_exceptions

from app.configs.settings import settings

logger = logging.getLogger(__name__)

_firebase_app = None


def _get_firebase_app():
    """Khởi tạo Firebase Admin SDK một lần, trả về None nếu chưa cấu hình credentials."""
    global _firebase_app
    if _firebase_app is not None:
        return _firebase_app

    if not settings.FIREBASE_CREDENTIALS_PATH:
        return None

    try:
        _firebase_app = firebase_admin.get_app()
    except ValueError:
        cred = credentials.Certificate(settings.FIREBASE_CREDENTIALS_PATH)
        _firebase_app = firebase_admin.initialize_app(cred)
    return _firebase_app


@dataclass
class PushResult:
    success: bool
    is_invalid_token: bool = False
    error: Optional[str] = None


class PushService:
    """
    Gửi push notification qua Firebase Cloud Messaging.

    SDK của Firebase là blocking nên lời gọi được đẩy sang thread và giới hạn thời gian
    bằng PROVIDER_TIMEOUT_SECONDS. Hàm send không bao giờ raise; mọi lỗi đều trả về
    PushResult(success=False).
    """

    @staticmethod
    def _build_message(token: str, title: str, body: str) -> messaging.Message:
        return messaging.Message(
            token=token,
            notification=messaging.Notification(title=title, body=body),
            data={"click_action": "FLUTTER_NOTIFICATION_CLICK"},
            webpush=messaging.WebpushConfig(
                headers={"Urgency": "high"},
                notification=messaging.WebpushNotification(title=title, body=body),
            ),
        )

    @staticmethod
    async def send(token: str, title: str, body: str) -> PushResult:
        app = _get_firebase_app()
        if app is None:
            return PushResult(success=False, error="Push provider not configured")

        message = PushService._build_message(token, title, body)
        try:
            await asyncio.wait_for(
                asyncio.to_thread(messaging.send, message, app=app),
                timeout=settings.PROVIDER_TIMEOUT_SECONDS,
            )
            return PushResult(success=True)
        except asyncio.TimeoutError:
            logger.warning("Push send timed out")
            return PushResult(success=False, error="timeout")
        except (messaging.UnregisteredError, firebase_exceptions.InvalidArgumentError) as e:
            logger.info(f"Push token rejected by provider: {e}")
            return PushResult(success=False, is_invalid_token=True, error=str(e))
        except firebase_exceptions.FirebaseError as e:
            logger.warning(f"Push send failed: {e}")
            return PushResult(success=False, error=str(e))
        except Exception as e:
            logger.warning(f"Push send failed unexpectedly: {e}", exc_info=True)
            return PushResult(success=False, error=str(e))
