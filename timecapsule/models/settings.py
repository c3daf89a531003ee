from dataclasses import dataclass, asdict

from sqlalchemy import CheckConstraint
from timecapsule.extensions import db

SETTINGS_ID = 1


@dataclass(frozen=True)
class PolicySettings:
    """Value snapshot of the settings row, passed explicitly into intake."""

    ip_daily_limit: int
    ip_10min_limit: int
    min_lead_seconds: int
    daily_create_limit: int

    def to_dict(self) -> dict:
        return asdict(self)


class Settings(db.Model):
    __tablename__ = "settings"

    id = db.Column(db.Integer, primary_key=True)  # singleton: id=1
    ip_daily_limit = db.Column(db.Integer, nullable=False, default=20)
    ip_10min_limit = db.Column(db.Integer, nullable=False, default=5)
    min_lead_seconds = db.Column(db.Integer, nullable=False, default=3600)
    daily_create_limit = db.Column(db.Integer, nullable=False, default=80)

    __table_args__ = (
        CheckConstraint("id = 1", name="ck_settings_singleton"),
    )

    def to_policy(self) -> PolicySettings:
        return PolicySettings(
            ip_daily_limit=self.ip_daily_limit,
            ip_10min_limit=self.ip_10min_limit,
            min_lead_seconds=self.min_lead_seconds,
            daily_create_limit=self.daily_create_limit,
        )
