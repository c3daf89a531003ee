from typing import Any

from flask import request


def client_ip() -> str:
    """First X-Forwarded-For hop, then X-Real-IP, then the socket peer."""
    forwarded = (request.headers.get("X-Forwarded-For") or "").split(",")[0].strip()
    if forwarded:
        return forwarded
    real_ip = (request.headers.get("X-Real-IP") or "").strip()
    if real_ip:
        return real_ip
    return request.remote_addr or "0.0.0.0"


def non_negative_int(value: Any, default: int = 0) -> int:
    """Parse an admin-supplied number; garbage becomes `default`, negatives clamp to 0."""
    try:
        return max(0, int(str(value).strip()))
    except (TypeError, ValueError):
        return max(0, default)


def request_payload() -> dict:
    """JSON body when the client sent JSON, otherwise the submitted form."""
    if request.is_json:
        data = request.get_json(silent=True)
        return data if isinstance(data, dict) else {}
    return request.form.to_dict()
