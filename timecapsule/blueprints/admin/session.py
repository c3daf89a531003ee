from flask import current_app, jsonify, request
from flask_wtf.csrf import generate_csrf

from . import bp
from timecapsule.extensions import csrf, limiter
from timecapsule.services import admin_auth, clock
from timecapsule.utils.helpers import request_payload


def _cookie_kwargs():
    return dict(
        path="/",
        httponly=True,
        samesite="Lax",
        secure=bool(current_app.config.get("ADMIN_SESSION_COOKIE_SECURE", False)),
    )


@csrf.exempt
@bp.post("/login")
@limiter.limit("10 per minute; 100 per hour")
def login():
    password = str(request_payload().get("password") or "")
    expected = current_app.config.get("ADMIN_PASSWORD")
    if not admin_auth.check_password(password, expected):
        current_app.logger.warning("admin login failed from %s", request.remote_addr)
        return jsonify({"ok": False, "message": "Wrong password."}), 401

    max_age = int(current_app.config.get("ADMIN_SESSION_MAX_AGE", 24 * 3600))
    resp = jsonify({"ok": True})
    resp.set_cookie(
        admin_auth.COOKIE_NAME,
        admin_auth.issue(expected, clock.now(), max_age),
        max_age=max_age,
        **_cookie_kwargs(),
    )
    return resp


@csrf.exempt
@bp.post("/logout")
def logout():
    resp = jsonify({"ok": True})
    resp.delete_cookie(admin_auth.COOKIE_NAME, path="/")
    return resp


@bp.get("/csrf")
def csrf_token():
    return jsonify({"csrf_token": generate_csrf()})
