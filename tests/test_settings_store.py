from timecapsule.extensions import db
from timecapsule.models import Settings, PolicySettings
from timecapsule.services import settings_store


def test_first_read_seeds_defaults_from_config(ctx):
    assert db.session.get(Settings, 1) is None
    s = settings_store.read()
    assert s == PolicySettings(ip_daily_limit=20, ip_10min_limit=5, min_lead_seconds=3600, daily_create_limit=80)
    assert db.session.query(Settings).count() == 1


def test_update_overwrites_every_field(ctx):
    settings_store.read()
    new = PolicySettings(ip_daily_limit=3, ip_10min_limit=0, min_lead_seconds=0, daily_create_limit=1)
    settings_store.update(new)
    assert settings_store.read() == new
    assert db.session.query(Settings).count() == 1


def test_update_without_prior_read_creates_singleton(ctx):
    new = PolicySettings(ip_daily_limit=7, ip_10min_limit=2, min_lead_seconds=600, daily_create_limit=9)
    settings_store.update(new)
    assert settings_store.read() == new
