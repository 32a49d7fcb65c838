import re
from typing import Optional

_NON_DIGIT = re.compile(r"\D")


def normalize_whatsapp_number(value: Optional[str]) -> Optional[str]:
    """
    Chuẩn hóa số WhatsApp về dạng chỉ gồm chữ số.

    Trả về None nếu sau khi bỏ ký tự không phải số, độ dài nằm ngoài 10-15 chữ số.
    """
    digits = _NON_DIGIT.sub("", str(value or ""))
    if len(digits) < 10 or len(digits) > 15:
        return None
    return digits


def format_phone_e164(phone: str, country_code: str) -> str:
    """
    Định dạng số gửi cho provider: chỉ chữ số, thêm mã quốc gia nếu thiếu (không có dấu +).
    """
    formatted = _NON_DIGIT.sub("", str(phone))
    if not formatted.startswith(country_code):
        formatted = country_code + formatted
    return formatted


def mask_number(phone: Optional[str]) -> Optional[str]:
    """Che số điện thoại khi ghi log, chỉ giữ 4 số cuối."""
    if not phone or len(phone) < 4:
        return phone
    return "*" * (len(phone) - 4) + phone[-4:]
