from flask import jsonify, request, current_app

from . import bp
from timecapsule.extensions import csrf
from timecapsule.services import capsules, clock, intake, settings_store
from timecapsule.utils.helpers import client_ip, request_payload

# anonymous JSON/form API; no session, no CSRF token to carry
csrf.exempt(bp)


@bp.post("/submit")
def submit():
    sub = intake.Submission.from_payload(request_payload())
    settings = settings_store.read()
    result = intake.submit(sub, client_ip(), clock.now(), settings)
    return jsonify({"ok": True, "id": result.id, "status_url": result.status_url})


def status_payload(capsule_id: str) -> dict:
    """Public view of one capsule plus UTC+8 display fields; raises NotFound."""
    view = capsules.get_public(capsule_id)
    now = clock.now()
    return {
        "id": view["id"],
        "status": view["status"],
        "send_at": view["send_at"],
        "send_at_civil": clock.civil_datetime(view["send_at"]),
        "countdown_seconds": max(0, view["send_at"] - now),
        "sent_at": view["sent_at"],
        "delivered_at": view["delivered_at"],
        "bounced_at": view["bounced_at"],
        "bounce_reason": view["bounce_reason"],
        "tz": clock.TZ_NAME,
    }


@bp.get("/status/<capsule_id>")
def status(capsule_id: str):
    return jsonify(status_payload(capsule_id))


@bp.get("/settings/public")
def public_settings():
    s = settings_store.read()
    return jsonify({
        "min_lead_seconds": s.min_lead_seconds,
        "min_lead_human": clock.humanize_seconds(s.min_lead_seconds),
        "daily_create_limit": s.daily_create_limit,
        "contact_email": current_app.config.get("CONTACT_EMAIL") or None,
    })
