from sqlalchemy import func

from timecapsule.extensions import db
from timecapsule.models.capsule import Capsule, STATUS_DELETED
from . import clock

MAX_DAYS = 365
DEFAULT_DAYS = 30


def clamp_days(raw) -> int:
    try:
        days = int(raw)
    except (TypeError, ValueError):
        days = DEFAULT_DAYS
    return min(MAX_DAYS, max(1, days))


def aggregate(days: int, now: int) -> dict:
    """Admin dashboard aggregates; deleted capsules never count."""
    live = Capsule.status != STATUS_DELETED
    start_ymd = clock.civil_date(now - days * 24 * 3600)
    count = func.count().label("count")

    send_dates = db.session.execute(
        db.select(Capsule.send_at_ymd.label("date"), count)
        .where(live, Capsule.send_at_ymd >= start_ymd)
        .group_by(Capsule.send_at_ymd)
        .order_by(Capsule.send_at_ymd.desc())
        .limit(80)
    ).all()

    ips = db.session.execute(
        db.select(Capsule.ip_addr.label("ip"), count)
        .where(live, Capsule.ip_addr.is_not(None), Capsule.ip_addr != "")
        .group_by(Capsule.ip_addr)
        .order_by(count.desc())
        .limit(50)
    ).all()

    emails = db.session.execute(
        db.select(Capsule.email, count)
        .where(live)
        .group_by(Capsule.email)
        .order_by(count.desc())
        .limit(50)
    ).all()

    statuses = db.session.execute(
        db.select(Capsule.status, count).where(live).group_by(Capsule.status)
    ).all()

    total = db.session.execute(db.select(func.count()).select_from(Capsule).where(live)).scalar_one()

    return {
        "sendDateStats": [dict(r._mapping) for r in send_dates],
        "ipStats": [dict(r._mapping) for r in ips],
        "emailStats": [dict(r._mapping) for r in emails],
        "statusStats": [dict(r._mapping) for r in statuses],
        "totalCount": total,
        "dateRange": {"days": days, "start": start_ymd, "end": clock.civil_date(now)},
    }
