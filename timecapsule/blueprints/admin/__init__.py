from flask import Blueprint, request, current_app, jsonify

from timecapsule.services import admin_auth, clock

bp = Blueprint("admin", __name__)

# reachable without a session cookie
_PUBLIC_ENDPOINTS = {"admin.login", "admin.logout"}


@bp.before_request
def _require_admin_session():
    if request.endpoint in _PUBLIC_ENDPOINTS:
        return None
    cookie = request.cookies.get(admin_auth.COOKIE_NAME)
    if admin_auth.verify(cookie, current_app.config.get("ADMIN_PASSWORD"), clock.now()):
        return None
    return jsonify({"ok": False, "message": "Unauthorized."}), 401


# Import submodules so their routes register on the same bp
from . import session  # noqa: E402,F401
from . import settings  # noqa: E402,F401
from . import capsules  # noqa: E402,F401
from . import stats  # noqa: E402,F401
