from flask import current_app

from timecapsule.extensions import db
from timecapsule.models.settings import Settings, PolicySettings, SETTINGS_ID
from .sql import upsert_insert


def defaults() -> PolicySettings:
    cfg = current_app.config
    return PolicySettings(
        ip_daily_limit=int(cfg.get("IP_DAILY_LIMIT", 20)),
        ip_10min_limit=int(cfg.get("IP_10MIN_LIMIT", 5)),
        min_lead_seconds=int(cfg.get("MIN_LEAD_SECONDS", 3600)),
        daily_create_limit=int(cfg.get("DAILY_CREATE_LIMIT", 80)),
    )


def read() -> PolicySettings:
    """
    Return the singleton settings, seeding it from config defaults on first read.
    INSERT .. ON CONFLICT DO NOTHING keeps concurrent first reads from racing.
    """
    row = db.session.get(Settings, SETTINGS_ID)
    if row is None:
        stmt = upsert_insert(Settings).values(id=SETTINGS_ID, **defaults().to_dict())
        db.session.execute(stmt.on_conflict_do_nothing(index_elements=["id"]))
        db.session.commit()
        row = db.session.get(Settings, SETTINGS_ID)
    return row.to_policy()


def update(new: PolicySettings) -> PolicySettings:
    """Overwrite all four fields in one statement. Callers clamp values beforehand."""
    values = new.to_dict()
    stmt = upsert_insert(Settings).values(id=SETTINGS_ID, **values)
    stmt = stmt.on_conflict_do_update(index_elements=["id"], set_=values)
    try:
        db.session.execute(stmt)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    # identity map may still hold the pre-update row
    db.session.expire_all()
    current_app.logger.info("settings updated: %s", values)
    return new
