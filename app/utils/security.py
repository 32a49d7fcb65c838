import bcrypt
import hashlib
import secrets
from typing import Optional

def hash_password(password: str) -> str:
    """
    Hash mật khẩu với bcrypt, xử lý password dài >72 bytes.
    """
    if len(password.encode('utf-8')) > 72:
        password = hashlib.sha256(password.encode('utf-8')).hexdigest()

    hashed = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt())
    return hashed.decode('utf-8')


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """
    Kiểm tra password plain text có khớp với hash không.
    """
    if not hashed_password:
        return False

    if len(plain_password.encode('utf-8')) > 72:
        plain_password = hashlib.sha256(plain_password.encode('utf-8')).hexdigest()

    return bcrypt.checkpw(plain_password.encode('utf-8'), hashed_password.encode('utf-8'))


def generate_otp_code(length: int = 6) -> str:
    """
    Sinh mã OTP gồm `length` chữ số, không bắt đầu bằng 0.
    """
    low = 10 ** (length - 1)
    high = 10 ** length
    return str(low + secrets.randbelow(high - low))
