import os

from dotenv import dotenv_values


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


class BaseConfig:
    # Secrets (env in prod; dev/test may use defaults)
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-not-secure")
    WTF_CSRF_SECRET_KEY = SECRET_KEY
    WTF_CSRF_TIME_LIMIT = None

    # Database (env in prod; dev/test may use default)
    _ENV_FALLBACK = dotenv_values(".env")
    SQLALCHEMY_DATABASE_URI = (
        os.environ.get("DATABASE_URL")
        or _ENV_FALLBACK.get("DATABASE_URL")
        or "sqlite:///capsules.db"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Logging / misc
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"

    # Flask-Limiter: soft global fallback; the capsule intake keeps its own counters
    RATELIMIT_DEFAULT = os.getenv("RATELIMIT_DEFAULT", "1000 per hour")
    RATELIMIT_HEADERS_ENABLED = True

    # --- Policy defaults (seed the settings row on first read) ---
    IP_DAILY_LIMIT = _int_env("IP_DAILY_LIMIT", 20)
    IP_10MIN_LIMIT = _int_env("IP_10MIN_LIMIT", 5)
    MIN_LEAD_SECONDS = _int_env("MIN_LEAD_SECONDS", 3600)
    DAILY_CREATE_LIMIT = _int_env("DAILY_CREATE_LIMIT", 80)

    # --- Content bounds ---
    CONTENT_MAX_LENGTH = _int_env("CONTENT_MAX_LENGTH", 10000)
    SIGNER_MAX_LENGTH = _int_env("SIGNER_MAX_LENGTH", 100)
    CONTACT_MAX_LENGTH = _int_env("CONTACT_MAX_LENGTH", 200)

    # --- Email transport ---
    EMAIL_TRANSPORT = os.getenv("EMAIL_TRANSPORT", "resend").lower()
    RESEND_API_KEY = os.getenv("RESEND_API_KEY", "")
    RESEND_API_URL = os.getenv("RESEND_API_URL", "https://api.resend.com/emails")
    EMAIL_TIMEOUT_SECONDS = _int_env("EMAIL_TIMEOUT_SECONDS", 20)
    FROM_EMAIL = os.getenv("FROM_EMAIL", "Time Capsule <noreply@example.com>")
    EMAIL_SUBJECT = os.getenv("EMAIL_SUBJECT", "Your time capsule has arrived 💌")

    # --- Mail (SMTP transport) ---
    MAIL_SERVER = os.getenv("MAIL_SERVER", "localhost")
    MAIL_PORT = int(os.getenv("MAIL_PORT", "587"))
    MAIL_USE_TLS = (os.getenv("MAIL_USE_TLS", "true").lower() == "true")
    MAIL_USE_SSL = (os.getenv("MAIL_USE_SSL", "false").lower() == "true")
    MAIL_USERNAME = os.getenv("MAIL_USERNAME")
    MAIL_PASSWORD = os.getenv("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = FROM_EMAIL
    MAIL_SUPPRESS_SEND = (os.getenv("MAIL_SUPPRESS_SEND", "false").lower() == "true")

    # --- Provider webhook (Svix-style signing secret: whsec_<base64>) ---
    RESEND_WEBHOOK_SECRET = os.getenv("RESEND_WEBHOOK_SECRET", "")

    # --- Admin ---
    ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")
    ADMIN_SESSION_MAX_AGE = _int_env("ADMIN_SESSION_MAX_AGE", 24 * 3600)

    # Used for absolute links in emails
    APP_BASE_URL = os.getenv("APP_BASE_URL", "")
    CONTACT_EMAIL = os.getenv("CONTACT_EMAIL", "")

    # --- Sweeper ---
    SWEEP_BATCH_SIZE = _int_env("SWEEP_BATCH_SIZE", 50)
    SWEEP_INTERVAL_SECONDS = _int_env("SWEEP_INTERVAL_SECONDS", 60)
    SWEEP_LEASE_SECONDS = _int_env("SWEEP_LEASE_SECONDS", 300)
    SCHEDULER_ENABLED = (os.getenv("SCHEDULER_ENABLED", "true").lower() == "true")

    # --- Rate-limit counter retention (prune command) ---
    RATE_LIMIT_RETENTION_DAYS = _int_env("RATE_LIMIT_RETENTION_DAYS", 7)


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "DEBUG")
    SESSION_COOKIE_SECURE = False
    ADMIN_SESSION_COOKIE_SECURE = False
    MAIL_SUPPRESS_SEND = True


class ProductionConfig(BaseConfig):
    DEBUG = False
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "WARNING")
    # REQUIRE env vars in production (fail fast if missing)
    SECRET_KEY = os.environ.get("SECRET_KEY")
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL")
    ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD")
    SESSION_COOKIE_SECURE = True
    ADMIN_SESSION_COOKIE_SECURE = True
    MAIL_SUPPRESS_SEND = False


class TestingConfig(BaseConfig):
    TESTING = True
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.environ.get("TEST_DATABASE_URL", "sqlite:///:memory:")
    SESSION_COOKIE_SECURE = False
    ADMIN_SESSION_COOKIE_SECURE = False
    SCHEDULER_ENABLED = False
    MAIL_SUPPRESS_SEND = True
    # per-route Flask-Limiter rules off; intake counters stay active
    RATELIMIT_ENABLED = False


_ENV_MAP = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "staging": ProductionConfig,
    "testing": TestingConfig,
}


def get_config():
    env = os.environ.get("APP_ENV", "development").lower()
    return _ENV_MAP.get(env, DevelopmentConfig)
