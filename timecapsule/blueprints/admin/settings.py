from flask import jsonify

from . import bp
from timecapsule.models.settings import PolicySettings
from timecapsule.services import settings_store
from timecapsule.utils.helpers import non_negative_int, request_payload


@bp.get("/settings")
def get_settings():
    return jsonify(settings_store.read().to_dict())


@bp.post("/settings")
def put_settings():
    payload = request_payload()
    # every field is overwritten; blanks and garbage become 0
    updated = PolicySettings(
        ip_daily_limit=non_negative_int(payload.get("ip_daily_limit")),
        ip_10min_limit=non_negative_int(payload.get("ip_10min_limit")),
        min_lead_seconds=non_negative_int(payload.get("min_lead_seconds")),
        daily_create_limit=non_negative_int(payload.get("daily_create_limit")),
    )
    settings_store.update(updated)
    return jsonify({"ok": True, "settings": updated.to_dict()})
