from sqlalchemy.dialects import postgresql, sqlite

from timecapsule.extensions import db


def upsert_insert(model):
    """
    INSERT supporting ON CONFLICT for the bound engine's dialect.
    Conflict resolution is left to the database; callers never check-then-insert.
    """
    name = db.session.get_bind().dialect.name
    if name == "postgresql":
        return postgresql.insert(model)
    if name == "sqlite":
        return sqlite.insert(model)
    raise RuntimeError(f"Upsert not supported for dialect {name!r}")
