from timecapsule.models import PolicySettings
from timecapsule.services import clock, rate_limiter

NOW = clock.to_epoch("2025-06-01T12:03")


def _settings(daily=20, burst=5):
    return PolicySettings(ip_daily_limit=daily, ip_10min_limit=burst, min_lead_seconds=0, daily_create_limit=80)


def test_first_request_allowed_and_counted(ctx):
    d = rate_limiter.check("1.1.1.1", NOW, _settings())
    assert d.allowed
    assert (d.daily_count, d.bucket_count) == (1, 1)
    assert rate_limiter.counts("1.1.1.1", NOW) == (1, 1)


def test_burst_limit_rejects_and_still_counts(ctx):
    s = _settings(daily=20, burst=2)
    assert rate_limiter.check("2.2.2.2", NOW, s).allowed
    assert rate_limiter.check("2.2.2.2", NOW, s).allowed
    third = rate_limiter.check("2.2.2.2", NOW, s)
    assert not third.allowed
    assert "Too many" in third.reason
    # rejected attempts are never rolled back
    assert rate_limiter.counts("2.2.2.2", NOW) == (3, 3)


def test_new_bucket_resets_burst_but_not_daily(ctx):
    s = _settings(daily=20, burst=1)
    assert rate_limiter.check("3.3.3.3", NOW, s).allowed
    assert not rate_limiter.check("3.3.3.3", NOW + 60, s).allowed
    later = NOW + 10 * 60
    d = rate_limiter.check("3.3.3.3", later, s)
    assert d.allowed
    assert d.daily_count == 3
    assert d.bucket_count == 1


def test_daily_limit_checked_before_burst(ctx):
    s = _settings(daily=1, burst=1)
    rate_limiter.check("4.4.4.4", NOW, s)
    d = rate_limiter.check("4.4.4.4", NOW, s)
    assert not d.allowed
    assert "Daily" in d.reason


def test_zero_limits_reject_everything(ctx):
    d = rate_limiter.check("5.5.5.5", NOW, _settings(daily=0, burst=0))
    assert not d.allowed


def test_counters_are_per_ip(ctx):
    s = _settings(burst=1)
    assert rate_limiter.check("6.6.6.6", NOW, s).allowed
    assert rate_limiter.check("7.7.7.7", NOW, s).allowed


def test_prune_drops_stale_rows(ctx):
    s = _settings()
    rate_limiter.check("8.8.8.8", NOW - 30 * 86400, s)
    rate_limiter.check("8.8.8.8", NOW, s)
    daily, bucket = rate_limiter.prune(NOW - 7 * 86400)
    assert (daily, bucket) == (1, 1)
    assert rate_limiter.counts("8.8.8.8", NOW) == (1, 1)
