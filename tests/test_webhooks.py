import json

from timecapsule.extensions import db
from timecapsule.models import SendLog
from timecapsule.models.send_log import UNKNOWN_CAPSULE_ID
from timecapsule.services import capsules, clock, webhooks

NOW = clock.to_epoch("2025-06-01T12:00")


def _sent_capsule(provider_id="re_123"):
    cid = capsules.create(email="a@example.com", content="c", send_at=NOW - 60, ip_addr="1.1.1.1", now=NOW - 7200)
    capsules.apply_dispatch_result(cid, capsules.DispatchOutcome(ok=True, provider_email_id=provider_id, at=NOW))
    return cid


def _post(app, client, payload, secret=None, msg_id="msg_1", ts="1717214400"):
    body = json.dumps(payload).encode("utf-8")
    sig = webhooks.sign(secret or app.config["RESEND_WEBHOOK_SECRET"], msg_id, ts, body)
    return client.post(
        "/api/webhook/resend",
        data=body,
        headers={
            "Content-Type": "application/json",
            "svix-id": msg_id,
            "svix-timestamp": ts,
            "svix-signature": f"v1,{sig}",
        },
    )


def test_signature_roundtrip_accepts_any_listed_candidate(app):
    secret = app.config["RESEND_WEBHOOK_SECRET"]
    body = b'{"type":"email.sent"}'
    good = webhooks.sign(secret, "m", "1", body)
    headers = {"svix-id": "m", "svix-timestamp": "1", "svix-signature": f"v1,bogus v1,{good}"}
    assert webhooks.verify_signature(body, headers, secret)
    assert not webhooks.verify_signature(body + b" ", headers, secret)
    assert not webhooks.verify_signature(body, headers, "")


def test_delivered_event_marks_capsule(app, client):
    with app.app_context():
        cid = _sent_capsule()
    r = _post(app, client, {
        "type": "email.delivered",
        "created_at": "2025-06-01T04:05:00.000Z",
        "data": {"email_id": "re_123"},
    })
    assert r.status_code == 200
    assert r.get_data(as_text=True) == "ok"
    with app.app_context():
        c = capsules.get(cid)
        assert c.status == "delivered"
        assert c.delivered_at == clock.to_epoch("2025-06-01T12:05")
        [log] = db.session.query(SendLog).filter_by(capsule_id=cid, status="event").all()
        assert log.event == "email.delivered"


def test_bounce_after_delivered_overwrites(app, client):
    with app.app_context():
        cid = _sent_capsule()
    _post(app, client, {"type": "email.delivered", "data": {"email_id": "re_123"}})
    _post(app, client, {"type": "email.bounced", "data": {"email_id": "re_123", "bounce": {"message": "no such user"}}},
          msg_id="msg_2")
    with app.app_context():
        c = capsules.get(cid)
        assert c.status == "bounced"
        assert c.bounce_reason == "no such user"


def test_bad_signature_is_rejected_without_audit(app, client):
    with app.app_context():
        cid = _sent_capsule()
    r = _post(app, client, {"type": "email.delivered", "data": {"email_id": "re_123"}},
              secret="whsec_d3Jvbmcta2V5")
    assert r.status_code == 400
    assert r.get_data(as_text=True) == "invalid signature"
    with app.app_context():
        assert capsules.get(cid).status == "sent"
        assert db.session.query(SendLog).count() == 0


def test_missing_email_id_is_acknowledged(app, client):
    r = _post(app, client, {"type": "email.delivered", "data": {}})
    assert r.status_code == 200
    assert r.get_data(as_text=True) == "no email_id"


def test_unknown_provider_id_is_logged_under_sentinel(app, client):
    r = _post(app, client, {"type": "email.delivered", "data": {"email_id": "re_missing"}})
    assert r.status_code == 200
    with app.app_context():
        [log] = db.session.query(SendLog).all()
        assert log.capsule_id == UNKNOWN_CAPSULE_ID
        assert log.provider_email_id == "re_missing"


def test_unhandled_event_type_is_logged_only(app, client):
    with app.app_context():
        cid = _sent_capsule()
    r = _post(app, client, {"type": "email.opened", "data": {"email_id": "re_123"}})
    assert r.status_code == 200
    with app.app_context():
        assert capsules.get(cid).status == "sent"
        assert db.session.query(SendLog).filter_by(event="email.opened").count() == 1


def test_unconfigured_secret_rejects(app, client, monkeypatch):
    body = json.dumps({"type": "email.delivered", "data": {"email_id": "x"}}).encode()
    sig = webhooks.sign(app.config["RESEND_WEBHOOK_SECRET"], "m", "1", body)
    monkeypatch.setitem(app.config, "RESEND_WEBHOOK_SECRET", "")
    r = client.post("/api/webhook/resend", data=body,
                    headers={"svix-id": "m", "svix-timestamp": "1", "svix-signature": f"v1,{sig}"})
    assert r.status_code == 400


def test_deleted_capsule_ignores_events(app, client):
    with app.app_context():
        cid = _sent_capsule()
        capsules.soft_delete(cid)
    _post(app, client, {"type": "email.delivered", "data": {"email_id": "re_123"}})
    with app.app_context():
        assert capsules.get(cid).status == "deleted"


def test_replayed_delivered_event_is_idempotent(app, client):
    with app.app_context():
        cid = _sent_capsule()
    payload = {"type": "email.delivered", "created_at": "2025-06-01T04:05:00.000Z", "data": {"email_id": "re_123"}}
    _post(app, client, payload)
    with app.app_context():
        first = capsules.get(cid).to_admin_dict()
    r = _post(app, client, payload)
    assert r.status_code == 200
    with app.app_context():
        assert capsules.get(cid).to_admin_dict() == first
        # each delivery is still audited
        assert db.session.query(SendLog).filter_by(event="email.delivered").count() == 2


def test_tampered_body_with_original_headers_is_rejected(app, client):
    with app.app_context():
        cid = _sent_capsule()
    signed = json.dumps({"type": "email.opened", "data": {"email_id": "re_123"}}).encode("utf-8")
    ts = "1717214400"
    sig = webhooks.sign(app.config["RESEND_WEBHOOK_SECRET"], "msg_t", ts, signed)
    tampered = json.dumps({"type": "email.bounced", "data": {"email_id": "re_123"}}).encode("utf-8")
    r = client.post(
        "/api/webhook/resend",
        data=tampered,
        headers={"Content-Type": "application/json", "svix-id": "msg_t",
                 "svix-timestamp": ts, "svix-signature": f"v1,{sig}"},
    )
    assert r.status_code == 400
    with app.app_context():
        c = capsules.get(cid)
        assert c.status == "sent"
        assert c.bounced_at is None
        assert db.session.query(SendLog).count() == 0


def test_failed_event_sets_status_and_error_only(app, client):
    with app.app_context():
        cid = _sent_capsule()
        before = capsules.get(cid).to_admin_dict()
    _post(app, client, {"type": "email.failed", "data": {"email_id": "re_123", "failed": {"reason": "suppressed"}}})
    with app.app_context():
        after = capsules.get(cid).to_admin_dict()
    assert after["status"] == "failed"
    assert after["last_error"] == "suppressed"
    changed = {k for k in after if after[k] != before[k]}
    assert changed == {"status", "last_error"}


def test_sent_event_updates_sent_at_only(app, client):
    with app.app_context():
        cid = _sent_capsule()
        before = capsules.get(cid).to_admin_dict()
    _post(app, client, {"type": "email.sent", "created_at": "2025-06-01T04:10:00Z", "data": {"email_id": "re_123"}})
    with app.app_context():
        after = capsules.get(cid).to_admin_dict()
    assert after["status"] == "sent"
    assert after["sent_at"] == clock.to_epoch("2025-06-01T12:10")
    changed = {k for k in after if after[k] != before[k]}
    assert changed == {"sent_at"}
