import base64
import hashlib
import hmac
from typing import Optional

COOKIE_NAME = "admin_session"


def _signature(password: str, exp: str) -> str:
    mac = hmac.new(password.encode("utf-8"), exp.encode("utf-8"), hashlib.sha256).digest()
    return base64.urlsafe_b64encode(mac).rstrip(b"=").decode("ascii")


def issue(password: str, now: int, max_age: int) -> str:
    """Cookie value `{expiry}.{sig}` with sig = base64url(HMAC-SHA256(password, expiry))."""
    exp = str(int(now) + int(max_age))
    return f"{exp}.{_signature(password, exp)}"


def verify(value: Optional[str], password: Optional[str], now: int) -> bool:
    if not value or not password:
        return False
    parts = value.split(".")
    if len(parts) != 2:
        return False
    exp_str, sig = parts
    try:
        exp = int(exp_str)
    except ValueError:
        return False
    if now > exp:
        return False
    expected = _signature(password, exp_str).encode("ascii")
    return hmac.compare_digest(sig.encode("ascii", "ignore"), expected)


def check_password(candidate: str, password: Optional[str]) -> bool:
    if not candidate or not password:
        return False
    return hmac.compare_digest(candidate.encode("utf-8"), password.encode("utf-8"))
