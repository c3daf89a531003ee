from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_wtf import CSRFProtect
from flask_limiter import Limiter
from flask_mail import Mail

from .utils.helpers import client_ip

db = SQLAlchemy()
migrate = Migrate()
csrf = CSRFProtect()

# Key: client IP as seen behind the proxy (X-Forwarded-For / X-Real-IP)
# Storage is configured in create_app() via limiter.init_app(...).
limiter = Limiter(key_func=client_ip)

mail = Mail()
