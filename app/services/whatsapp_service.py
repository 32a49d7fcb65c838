import logging
from typing import Any, Dict, List, Optional

import httpx

from app.configs.settings import settings
from app.utils.phone import format_phone_e164, mask_number

logger = logging.getLogger(__name__)


class WatiService:
    """
    Gửi tin nhắn template WhatsApp qua WATI.

    Không bao giờ raise: kết quả luôn là {"success": bool, "data" | "error": ...}.
    """

    @staticmethod
    def _auth_header() -> Optional[str]:
        token = settings.WATI_ACCESS_TOKEN
        if not token:
            return None
        return token if token.startswith("Bearer ") else f"Bearer {token}"

    @staticmethod
    def build_payload(template_name: str, params: List[Any], button_url: Optional[str] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "template_name": template_name,
            "broadcast_name": template_name,
            "parameters": [{"name": str(index + 1), "value": str(value)} for index, value in enumerate(params)],
        }
        if button_url:
            payload["buttons"] = [
                {
                    "type": "button",
                    "sub_type": "url",
                    "index": "0",
                    "parameters": [{"type": "text", "text": button_url}],
                }
            ]
        return payload

    @staticmethod
    async def send_template(
        phone: str,
        template_name: str,
        params: Optional[List[Any]] = None,
        button_url: Optional[str] = None
    ) -> Dict[str, Any]:
        auth_header = WatiService._auth_header()
        if not auth_header or not settings.WATI_BASE_URL:
            return {"success": False, "error": "WhatsApp provider not configured"}

        formatted_phone = format_phone_e164(phone, settings.DEFAULT_COUNTRY_CODE)
        base_url = settings.WATI_BASE_URL.rstrip("/")
        payload = WatiService.build_payload(template_name, params or [], button_url)

        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(settings.PROVIDER_TIMEOUT_SECONDS)) as client:
                response = await client.post(
                    f"{base_url}/api/v1/sendTemplateMessage",
                    params={"whatsappNumber": formatted_phone},
                    json=payload,
                    headers={"Authorization": auth_header, "Content-Type": "application/json"},
                )
                response.raise_for_status()
                return {"success": True, "data": response.json()}
        except httpx.HTTPStatusError as e:
            logger.warning(f"WATI send to {mask_number(formatted_phone)} failed: {e.response.status_code} {e.response.text}")
            return {"success": False, "error": e.response.text}
        except httpx.HTTPError as e:
            logger.warning(f"WATI send to {mask_number(formatted_phone)} failed: {e!r}")
            return {"success": False, "error": str(e) or e.__class__.__name__}

    @staticmethod
    async def send_otp_message(phone: str, otp_code: str) -> Dict[str, Any]:
        return await WatiService.send_template(phone, settings.WHATSAPP_OTP_TEMPLATE, [otp_code])

    @staticmethod
    async def send_notification_message(phone: str, title: str, message: str) -> Dict[str, Any]:
        return await WatiService.send_template(phone, settings.WHATSAPP_NOTIFICATION_TEMPLATE, [title, message])
