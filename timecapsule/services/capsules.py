"""
Capsule repository: persistence semantics only, no submission policy.

Status writes go through UPDATE statements so the identity map never hides a
concurrent writer's change; callers re-read with `get()` when they need the row.
"""
import uuid
from dataclasses import dataclass
from typing import Optional

from flask import current_app
from sqlalchemy import and_, func, or_, update
from sqlalchemy.exc import SQLAlchemyError

from timecapsule.extensions import db
from timecapsule.errors import NotFound
from timecapsule.models.capsule import (
    Capsule,
    STATUS_PENDING,
    STATUS_DISPATCHING,
    STATUS_SENT,
    STATUS_DELIVERED,
    STATUS_BOUNCED,
    STATUS_FAILED,
    STATUS_DELETED,
)
from timecapsule.models.send_log import SendLog
from . import clock

ADMIN_LIST_LIMIT = 1000

EVENT_DELIVERED = "email.delivered"
EVENT_BOUNCED = "email.bounced"
EVENT_FAILED = "email.failed"
EVENT_SENT = "email.sent"


@dataclass(frozen=True)
class DispatchOutcome:
    ok: bool
    provider_email_id: Optional[str] = None
    error: Optional[str] = None
    at: int = 0


@dataclass(frozen=True)
class AdminFilters:
    status: str = ""
    email: str = ""
    id: str = ""


def _new_id() -> str:
    return str(uuid.uuid4())


def _commit():
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        raise


def create(*, email: str, content: str, send_at: int, ip_addr: str, now: int,
           signer: Optional[str] = None, contact: Optional[str] = None) -> str:
    capsule = Capsule(
        id=_new_id(),
        email=email,
        content=content,
        signer=signer,
        contact=contact,
        ip_addr=ip_addr,
        send_at=send_at,
        send_at_ymd=clock.civil_date(send_at),
        created_at=now,
        created_on_ymd=clock.civil_date(now),
        status=STATUS_PENDING,
    )
    db.session.add(capsule)
    _commit()
    return capsule.id


def get(capsule_id: str) -> Optional[Capsule]:
    return db.session.execute(
        db.select(Capsule).where(Capsule.id == capsule_id).execution_options(populate_existing=True)
    ).scalar_one_or_none()


def get_public(capsule_id: str) -> dict:
    """Status and timestamps only; content, address and IP never leave through here."""
    row = db.session.execute(
        db.select(
            Capsule.id,
            Capsule.status,
            Capsule.send_at,
            Capsule.sent_at,
            Capsule.delivered_at,
            Capsule.bounced_at,
            Capsule.bounce_reason,
        ).where(Capsule.id == capsule_id, Capsule.status != STATUS_DELETED)
    ).one_or_none()
    if row is None:
        raise NotFound("Capsule not found.")
    return dict(row._mapping)


def list_for_admin(filters: AdminFilters, limit: int = ADMIN_LIST_LIMIT) -> list[Capsule]:
    q = db.select(Capsule).where(Capsule.status != STATUS_DELETED)
    if filters.status:
        q = q.where(Capsule.status == filters.status)
    if filters.email:
        q = q.where(Capsule.email.like(f"%{filters.email}%"))
    if filters.id:
        q = q.where(Capsule.id.like(f"%{filters.id}%"))
    q = q.order_by(Capsule.created_at.desc()).limit(min(limit, ADMIN_LIST_LIMIT))
    return list(db.session.execute(q).scalars())


def soft_delete(capsule_id: str) -> None:
    res = db.session.execute(
        update(Capsule).where(Capsule.id == capsule_id).values(status=STATUS_DELETED)
    )
    _commit()
    if not res.rowcount:
        raise NotFound("Capsule not found.")


def count_by_send_date(ymd: str) -> int:
    return db.session.execute(
        db.select(func.count()).select_from(Capsule).where(
            Capsule.send_at_ymd == ymd, Capsule.status != STATUS_DELETED
        )
    ).scalar_one()


def select_due_pending(now: int, limit: int) -> list[Capsule]:
    """
    Due pending rows, plus dispatching rows whose lease ran out (the sweeper
    that claimed them died mid-dispatch).
    """
    q = (
        db.select(Capsule)
        .where(
            Capsule.send_at <= now,
            or_(
                Capsule.status == STATUS_PENDING,
                and_(Capsule.status == STATUS_DISPATCHING, Capsule.claim_expires_at < now),
            ),
        )
        .order_by(Capsule.send_at.asc())
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    return list(db.session.execute(q).scalars())


def claim(capsule_id: str, worker: str, now: int, lease_seconds: int) -> bool:
    """Atomically take the dispatch lease; False when another sweeper owns it or the row moved on."""
    res = db.session.execute(
        update(Capsule)
        .where(
            Capsule.id == capsule_id,
            or_(
                Capsule.status == STATUS_PENDING,
                and_(Capsule.status == STATUS_DISPATCHING, Capsule.claim_expires_at < now),
            ),
        )
        .values(status=STATUS_DISPATCHING, claimed_by=worker, claim_expires_at=now + lease_seconds)
    )
    _commit()
    return res.rowcount == 1


def apply_dispatch_result(capsule_id: str, outcome: DispatchOutcome) -> None:
    # A concurrent admin delete wins: never resurrect a deleted row.
    where = and_(Capsule.id == capsule_id, Capsule.status != STATUS_DELETED)
    if outcome.ok:
        values = dict(
            status=STATUS_SENT,
            sent_at=outcome.at,
            provider_email_id=outcome.provider_email_id or None,
            last_error=None,
        )
    else:
        values = dict(status=STATUS_FAILED, last_error=outcome.error or "send failed")
    values.update(claimed_by=None, claim_expires_at=None)
    db.session.execute(update(Capsule).where(where).values(**values))
    _commit()


def find_by_provider_id(provider_email_id: str) -> Optional[str]:
    if not provider_email_id:
        return None
    return db.session.execute(
        db.select(Capsule.id).where(Capsule.provider_email_id == provider_email_id).limit(1)
    ).scalar_one_or_none()


def apply_webhook_event(capsule_id: str, event_type: str, event_time: int, reason: Optional[str] = None) -> bool:
    """
    Map one provider event onto the capsule. No precedence check against the
    current status: events apply in arrival order, so a late `email.bounced`
    overwrites `delivered`. Returns False for event types that change nothing.
    """
    if event_type == EVENT_DELIVERED:
        values = dict(status=STATUS_DELIVERED, delivered_at=event_time, last_error=None)
    elif event_type == EVENT_BOUNCED:
        reason = reason or "bounced"
        values = dict(status=STATUS_BOUNCED, bounced_at=event_time, bounce_reason=reason, last_error=reason)
    elif event_type == EVENT_FAILED:
        values = dict(status=STATUS_FAILED, last_error=reason or "failed")
    elif event_type == EVENT_SENT:
        values = dict(sent_at=event_time)
    else:
        return False
    # deleted is terminal even for provider events
    db.session.execute(
        update(Capsule)
        .where(Capsule.id == capsule_id, Capsule.status != STATUS_DELETED)
        .values(**values)
    )
    _commit()
    return True


def log_send(*, capsule_id: str, at: int, status: str, event: str,
             error: Optional[str] = None, provider_email_id: Optional[str] = None) -> Optional[str]:
    """Best-effort audit append: a failed insert is logged and dropped, never raised."""
    entry = SendLog(
        id=_new_id(),
        capsule_id=capsule_id,
        sent_at=at,
        status=status,
        error=error,
        provider_email_id=provider_email_id,
        event=event,
    )
    try:
        db.session.add(entry)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.warning("sends_log insert failed for capsule %s", capsule_id, exc_info=True)
        return None
    return entry.id
