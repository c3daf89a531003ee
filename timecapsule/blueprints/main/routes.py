from flask import jsonify, current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from . import bp
from timecapsule.blueprints.api.routes import status_payload
from timecapsule.extensions import db, limiter


@limiter.exempt
@bp.get("/health")
def health():
    try:
        ok = db.session.execute(text("SELECT 1")).scalar() == 1
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.warning("health check failed: %s", e)
        return jsonify({"ok": False, "error": str(e)}), 500
    return jsonify({"ok": True, "db": ok})


@bp.get("/status/<capsule_id>")
def capsule_status(capsule_id: str):
    # link handed out by /api/submit and the delivery email
    return jsonify(status_payload(capsule_id))
