import pytest

from timecapsule.errors import NotFound
from timecapsule.extensions import db
from timecapsule.models import SendLog
from timecapsule.models.capsule import STATUS_PENDING, STATUS_SENT, STATUS_DELETED, STATUS_DISPATCHING
from timecapsule.services import capsules, clock

NOW = clock.to_epoch("2025-06-01T12:00")


def _make(email="a@example.com", send_at=NOW - 60, **kw):
    return capsules.create(email=email, content="hello future", send_at=send_at, ip_addr="9.9.9.9", now=NOW - 7200, **kw)


def test_create_fills_civil_dates_and_pending(ctx):
    cid = _make(send_at=clock.to_epoch("2025-12-31T23:30"), signer="me")
    c = capsules.get(cid)
    assert c.status == STATUS_PENDING
    assert c.send_at_ymd == "2025-12-31"
    assert c.created_on_ymd == "2025-06-01"
    assert c.signer == "me"
    assert len(cid) == 36


def test_get_public_hides_private_fields(ctx):
    cid = _make()
    view = capsules.get_public(cid)
    assert view["id"] == cid
    assert view["status"] == STATUS_PENDING
    assert "email" not in view and "content" not in view and "ip_addr" not in view


def test_get_public_missing_or_deleted_is_not_found(ctx):
    with pytest.raises(NotFound):
        capsules.get_public("nope")
    cid = _make()
    capsules.soft_delete(cid)
    with pytest.raises(NotFound):
        capsules.get_public(cid)


def test_soft_delete_unknown_id_raises(ctx):
    with pytest.raises(NotFound):
        capsules.soft_delete("missing")


def test_list_for_admin_filters_and_excludes_deleted(ctx):
    a = _make(email="alice@example.com")
    b = _make(email="bob@example.com")
    gone = _make(email="alice@other.com")
    capsules.soft_delete(gone)
    capsules.apply_dispatch_result(b, capsules.DispatchOutcome(ok=True, provider_email_id="p1", at=NOW))

    all_ids = {c.id for c in capsules.list_for_admin(capsules.AdminFilters())}
    assert all_ids == {a, b}
    assert [c.id for c in capsules.list_for_admin(capsules.AdminFilters(email="alice"))] == [a]
    assert [c.id for c in capsules.list_for_admin(capsules.AdminFilters(status=STATUS_SENT))] == [b]
    assert [c.id for c in capsules.list_for_admin(capsules.AdminFilters(id=a[:8]))] == [a]


def test_count_by_send_date_ignores_deleted(ctx):
    day = clock.to_epoch("2025-08-08T10:00")
    _make(send_at=day)
    gone = _make(send_at=day + 3600)
    _make(send_at=day + 86400)
    capsules.soft_delete(gone)
    assert capsules.count_by_send_date("2025-08-08") == 1


def test_select_due_pending_orders_by_send_at(ctx):
    late = _make(send_at=NOW - 10)
    early = _make(send_at=NOW - 100)
    _make(send_at=NOW + 100)  # not due yet
    assert [c.id for c in capsules.select_due_pending(NOW, 10)] == [early, late]
    assert [c.id for c in capsules.select_due_pending(NOW, 1)] == [early]


def test_claim_is_exclusive_until_lease_expires(ctx):
    cid = _make()
    assert capsules.claim(cid, "w1", NOW, 300)
    assert not capsules.claim(cid, "w2", NOW + 10, 300)
    assert capsules.get(cid).status == STATUS_DISPATCHING
    assert capsules.select_due_pending(NOW + 10, 10) == []
    # lease ran out: row is due again and can be re-claimed
    assert [c.id for c in capsules.select_due_pending(NOW + 301, 10)] == [cid]
    assert capsules.claim(cid, "w2", NOW + 301, 300)
    assert capsules.get(cid).claimed_by == "w2"


def test_dispatch_result_never_resurrects_deleted(ctx):
    cid = _make()
    capsules.claim(cid, "w1", NOW, 300)
    capsules.soft_delete(cid)
    capsules.apply_dispatch_result(cid, capsules.DispatchOutcome(ok=True, provider_email_id="p", at=NOW))
    assert capsules.get(cid).status == STATUS_DELETED


def test_dispatch_failure_records_error_and_clears_claim(ctx):
    cid = _make()
    capsules.claim(cid, "w1", NOW, 300)
    capsules.apply_dispatch_result(cid, capsules.DispatchOutcome(ok=False, error="boom", at=NOW))
    c = capsules.get(cid)
    assert c.status == "failed"
    assert c.last_error == "boom"
    assert c.claimed_by is None and c.claim_expires_at is None


def test_webhook_event_overwrites_without_precedence(ctx):
    cid = _make()
    capsules.apply_dispatch_result(cid, capsules.DispatchOutcome(ok=True, provider_email_id="pid-1", at=NOW))
    assert capsules.find_by_provider_id("pid-1") == cid

    assert capsules.apply_webhook_event(cid, capsules.EVENT_DELIVERED, NOW + 5)
    assert capsules.get(cid).status == "delivered"
    # later bounce wins even after delivered
    assert capsules.apply_webhook_event(cid, capsules.EVENT_BOUNCED, NOW + 9, "mailbox full")
    c = capsules.get(cid)
    assert c.status == "bounced"
    assert c.bounced_at == NOW + 9
    assert c.bounce_reason == "mailbox full"
    assert c.delivered_at == NOW + 5


def test_webhook_event_unknown_type_changes_nothing(ctx):
    cid = _make()
    assert not capsules.apply_webhook_event(cid, "email.opened", NOW)
    assert capsules.get(cid).status == STATUS_PENDING


def test_webhook_event_skips_deleted(ctx):
    cid = _make()
    capsules.soft_delete(cid)
    capsules.apply_webhook_event(cid, capsules.EVENT_DELIVERED, NOW)
    assert capsules.get(cid).status == STATUS_DELETED


def test_log_send_appends(ctx):
    log_id = capsules.log_send(capsule_id="abc", at=NOW, status="success", event="api_sent", provider_email_id="p")
    row = db.session.get(SendLog, log_id)
    assert row.capsule_id == "abc"
    assert row.event == "api_sent"
