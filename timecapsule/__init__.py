import os

from flask import Flask, jsonify, request

# Load .env only for local/dev. In prod, env vars come from the platform.
if os.getenv("APP_ENV", "development") != "production":
    from dotenv import load_dotenv
    load_dotenv(".env", override=False)


from .config import get_config
from .errors import ServiceError, StorageUnavailable
from .extensions import db, migrate, csrf, limiter, mail
from .security import init_security
from .observability import init_logging, init_sentry


def create_app():
    app = Flask(__name__, template_folder="templates")

    # Rate-limit storage: in-process for dev/tests, Redis for prod-like envs
    app_env = (os.getenv("APP_ENV", "development") or "development").lower()
    use_redis = app_env in ("staging", "production")
    storage_uri = os.environ.get("REDIS_URL") if use_redis else "memory://"
    if use_redis and not storage_uri:
        raise RuntimeError("REDIS_URL is required in staging/production for rate limiting")
    app.config["RATELIMIT_STORAGE_URI"] = storage_uri

    app.config.from_object(get_config())
    app.config["APP_ENV"] = app_env

    def _require(name: str):
        val = os.getenv(name) or app.config.get(name)
        if not val:
            raise RuntimeError(f"Missing required environment variable: {name}")
        return val

    if app_env in ("staging", "production"):
        _require("SECRET_KEY")
        _require("DATABASE_URL")
        _require("ADMIN_PASSWORD")
        _require("RESEND_WEBHOOK_SECRET")
        if app.config.get("EMAIL_TRANSPORT") == "resend":
            _require("RESEND_API_KEY")

    init_logging(app)
    init_sentry(app)
    if app_env in ("staging", "production"):
        init_security(app)

    db.init_app(app)
    migrate.init_app(app, db, directory="migrations")
    csrf.init_app(app)
    limiter.init_app(app)
    mail.init_app(app)

    # Models must be imported before create_all()/autogenerate see the metadata
    from . import models  # noqa: F401

    from .blueprints.main import bp as main_bp
    from .blueprints.api import bp as api_bp
    from .blueprints.webhooks import bp as webhooks_bp
    from .blueprints.admin import bp as admin_bp

    app.register_blueprint(main_bp)                                  # "/health"
    app.register_blueprint(api_bp, url_prefix="/api")
    app.register_blueprint(webhooks_bp, url_prefix="/api/webhook")
    app.register_blueprint(admin_bp, url_prefix="/api/admin")

    _register_error_handlers(app)

    from .cli import register_cli
    register_cli(app)

    if app.config.get("SCHEDULER_ENABLED") and not app.config.get("TESTING"):
        from .scheduler import init_scheduler
        init_scheduler(app)

    return app


def _register_error_handlers(app):
    from flask_wtf.csrf import CSRFError
    from sqlalchemy.exc import SQLAlchemyError

    @app.errorhandler(ServiceError)
    def handle_service_error(e):
        return jsonify({"ok": False, "message": e.message}), e.status

    @app.errorhandler(SQLAlchemyError)
    def handle_db_error(e):
        db.session.rollback()
        app.logger.exception("database error on %s %s", request.method, request.path)
        err = StorageUnavailable("Internal server error.")
        return jsonify({"ok": False, "message": err.message}), err.status

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"ok": False, "message": "Not found."}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"ok": False, "message": "Method not allowed."}), 405

    @app.errorhandler(CSRFError)
    def handle_csrf_error(e):
        return jsonify({"ok": False, "message": f"CSRF validation failed: {e.description}"}), 400

    # 429 from Flask-Limiter rules (intake quota errors go through ServiceError)
    @app.errorhandler(429)
    def too_many_requests(e):
        retry_after = getattr(e, "retry_after", None)
        headers = {}
        payload = {"ok": False, "message": "Too many requests, please try again later."}
        if retry_after is not None:
            headers["Retry-After"] = str(int(retry_after))
            payload["retry_after"] = int(retry_after)
        return jsonify(payload), 429, headers
