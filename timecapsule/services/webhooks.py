"""
Provider delivery callbacks (Resend, signed Svix-style).

Signature: base64(HMAC-SHA256(key, f"{svix-id}.{svix-timestamp}.{raw body}"))
where key is the base64 part of the `whsec_...` secret. The signature header
holds space-separated `v1,<sig>` candidates; any match is accepted.
"""
import base64
import binascii
import hashlib
import hmac
import json
from dataclasses import dataclass
from datetime import datetime
from typing import Mapping, Optional

from flask import current_app

from timecapsule.errors import SignatureInvalid, InvalidInput
from timecapsule.models.send_log import OUTCOME_EVENT, UNKNOWN_CAPSULE_ID
from . import capsules, clock


@dataclass(frozen=True)
class ReconcileResult:
    action: str  # ignored|unknown|applied|logged
    capsule_id: Optional[str] = None
    event_type: str = ""


def _secret_key(secret: str) -> bytes:
    # only the part after the prefix is key material
    encoded = secret.split("_", 1)[1] if "_" in secret else ""
    try:
        return base64.b64decode(encoded)
    except (binascii.Error, ValueError):
        return b""


def sign(secret: str, msg_id: str, timestamp: str, raw_body: bytes) -> str:
    content = f"{msg_id}.{timestamp}.".encode("utf-8") + raw_body
    digest = hmac.new(_secret_key(secret), content, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_signature(raw_body: bytes, headers: Mapping[str, str], secret: str) -> bool:
    if not secret:
        return False
    msg_id = headers.get("svix-id") or ""
    timestamp = headers.get("svix-timestamp") or ""
    sig_header = headers.get("svix-signature") or ""
    if not (msg_id and timestamp and sig_header):
        return False
    key = _secret_key(secret)
    if not key:
        return False

    expected = sign(secret, msg_id, timestamp, raw_body).encode("ascii")
    candidates = [tok.split(",", 1)[1] for tok in sig_header.split(" ") if "," in tok]
    return any(hmac.compare_digest(c.encode("ascii", "ignore"), expected) for c in candidates if c)


def _event_time(event: dict, now: int) -> int:
    raw = event.get("created_at")
    if not raw:
        return now
    try:
        return int(datetime.fromisoformat(str(raw).replace("Z", "+00:00")).timestamp())
    except ValueError:
        return now


def _reason(event_type: str, data: dict) -> Optional[str]:
    if event_type == capsules.EVENT_BOUNCED:
        return str(((data.get("bounce") or {}).get("message")) or "bounced")
    if event_type == capsules.EVENT_FAILED:
        return str(((data.get("failed") or {}).get("reason")) or "failed")
    return None


def reconcile(raw_body: bytes, headers: Mapping[str, str], now: Optional[int] = None) -> ReconcileResult:
    secret = current_app.config.get("RESEND_WEBHOOK_SECRET") or ""
    if not verify_signature(raw_body, headers, secret):
        # dropped without an audit row; the provider retries on its own
        raise SignatureInvalid("invalid signature")

    try:
        event = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise InvalidInput("invalid json") from e
    if not isinstance(event, dict):
        raise InvalidInput("invalid json")

    now = now if now is not None else clock.now()
    event_type = str(event.get("type") or "")
    data = event.get("data") if isinstance(event.get("data"), dict) else {}
    email_id = str(data.get("email_id") or "")
    if not email_id:
        return ReconcileResult("ignored", event_type=event_type)

    at = _event_time(event, now)
    capsule_id = capsules.find_by_provider_id(email_id)
    capsules.log_send(
        capsule_id=capsule_id or UNKNOWN_CAPSULE_ID,
        at=at,
        status=OUTCOME_EVENT,
        event=event_type,
        provider_email_id=email_id,
    )
    if not capsule_id:
        current_app.logger.info(json.dumps({"event": "mail_webhook", "type": event_type,
                                            "provider_msg_id": email_id, "outcome": "unknown"}))
        return ReconcileResult("unknown", event_type=event_type)

    applied = capsules.apply_webhook_event(capsule_id, event_type, at, _reason(event_type, data))
    current_app.logger.info(json.dumps({
        "event": "mail_webhook",
        "type": event_type,
        "capsule_id": capsule_id,
        "provider_msg_id": email_id,
        "outcome": "applied" if applied else "logged",
    }))
    return ReconcileResult("applied" if applied else "logged", capsule_id, event_type)
