"""
Per-IP submission counters in two windows: civil day and 10-minute bucket.

Both counters are bumped *before* the limits are compared and the bump is
never undone, so a rejected request still consumes quota.
"""
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import delete

from timecapsule.extensions import db
from timecapsule.models.rate_limit import RateLimitDaily, RateLimitBucket
from timecapsule.models.settings import PolicySettings
from . import clock
from .sql import upsert_insert


@dataclass(frozen=True)
class RateDecision:
    allowed: bool
    reason: Optional[str] = None
    daily_count: int = 0
    bucket_count: int = 0


def _bump(model, key_col: str, ip: str, key: str, now: int) -> int:
    table = model.__table__
    stmt = upsert_insert(model).values(ip=ip, **{key_col: key}, count=1, updated_at=now)
    stmt = stmt.on_conflict_do_update(
        index_elements=["ip", key_col],
        set_={"count": table.c.count + 1, "updated_at": stmt.excluded.updated_at},
    )
    db.session.execute(stmt)
    return db.session.execute(
        db.select(table.c.count).where(table.c.ip == ip, table.c[key_col] == key)
    ).scalar_one()


def check(ip: str, now: int, settings: PolicySettings) -> RateDecision:
    ymd = clock.civil_date(now)
    bucket = clock.ten_minute_bucket(now)
    try:
        daily = _bump(RateLimitDaily, "ymd", ip, ymd, now)
        burst = _bump(RateLimitBucket, "bucket", ip, bucket, now)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    if daily > settings.ip_daily_limit:
        return RateDecision(
            False,
            f"Daily submission limit reached for this IP ({settings.ip_daily_limit}).",
            daily,
            burst,
        )
    if burst > settings.ip_10min_limit:
        return RateDecision(False, "Too many submissions from this IP, please try again later.", daily, burst)
    return RateDecision(True, None, daily, burst)


def counts(ip: str, now: int) -> tuple[int, int]:
    """Current (daily, bucket) counts without bumping; 0 for missing rows."""
    daily = db.session.execute(
        db.select(RateLimitDaily.count).where(
            RateLimitDaily.ip == ip, RateLimitDaily.ymd == clock.civil_date(now)
        )
    ).scalar_one_or_none()
    burst = db.session.execute(
        db.select(RateLimitBucket.count).where(
            RateLimitBucket.ip == ip, RateLimitBucket.bucket == clock.ten_minute_bucket(now)
        )
    ).scalar_one_or_none()
    return (daily or 0, burst or 0)


def prune(older_than: int) -> tuple[int, int]:
    """Drop counter rows last touched before `older_than` (epoch). Returns (daily, bucket) deleted."""
    d = db.session.execute(delete(RateLimitDaily).where(RateLimitDaily.updated_at < older_than))
    b = db.session.execute(delete(RateLimitBucket).where(RateLimitBucket.updated_at < older_than))
    db.session.commit()
    return d.rowcount or 0, b.rowcount or 0
