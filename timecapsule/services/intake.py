from dataclasses import dataclass
from typing import Optional

from flask import current_app

from timecapsule.errors import (
    ContentTooLong,
    DailyQuotaExceeded,
    EmptyContent,
    InvalidEmail,
    InvalidTimeFormat,
    LeadTimeTooShort,
    RateLimited,
)
from timecapsule.models.settings import PolicySettings
from timecapsule.utils.validators import clean_str, is_valid_email
from . import capsules, clock, rate_limiter


@dataclass(frozen=True)
class Submission:
    email: str
    content: str
    send_at: str
    signer: Optional[str] = None
    contact: Optional[str] = None

    @classmethod
    def from_payload(cls, data: dict) -> "Submission":
        def _s(key):
            return str(data.get(key) or "").strip()
        return cls(
            email=_s("email"),
            content=_s("content"),
            send_at=_s("send_at"),
            signer=_s("sign") or _s("signer") or None,
            contact=_s("contact") or None,
        )


@dataclass(frozen=True)
class SubmissionResult:
    id: str
    status_url: str


def submit(sub: Submission, ip: str, now: int, settings: PolicySettings) -> SubmissionResult:
    """
    Validate and persist one capsule. Checks run in a fixed order and the
    first failure wins; the rate counters are bumped before anything else.
    """
    decision = rate_limiter.check(ip, now, settings)
    if not decision.allowed:
        raise RateLimited(decision.reason)

    cfg = current_app.config
    content = (sub.content or "").strip()
    if not content:
        raise EmptyContent("Content must not be empty.")
    max_len = int(cfg.get("CONTENT_MAX_LENGTH", 10000))
    if len(content) > max_len:
        raise ContentTooLong(f"Content must be at most {max_len} characters.")

    email = (sub.email or "").strip()
    if not is_valid_email(email):
        raise InvalidEmail("Invalid email address.")

    try:
        send_at = clock.to_epoch(sub.send_at)
    except clock.InvalidFormat as e:
        raise InvalidTimeFormat("Invalid delivery time format, expected YYYY-MM-DDTHH:MM.") from e

    if send_at < now + settings.min_lead_seconds:
        raise LeadTimeTooShort(
            "Delivery time must be at least "
            f"{clock.humanize_seconds(settings.min_lead_seconds)} from now (UTC+8)."
        )

    send_ymd = clock.civil_date(send_at)
    if capsules.count_by_send_date(send_ymd) >= settings.daily_create_limit:
        raise DailyQuotaExceeded(
            f"The delivery limit for {send_ymd} ({settings.daily_create_limit}) has been reached, "
            "please choose another date."
        )

    capsule_id = capsules.create(
        email=email,
        content=content,
        send_at=send_at,
        ip_addr=ip,
        now=now,
        signer=clean_str(sub.signer, int(cfg.get("SIGNER_MAX_LENGTH", 100))),
        contact=clean_str(sub.contact, int(cfg.get("CONTACT_MAX_LENGTH", 200))),
    )
    current_app.logger.info("capsule created id=%s send_at_ymd=%s", capsule_id, send_ymd)
    return SubmissionResult(id=capsule_id, status_url=f"/status/{capsule_id}")
