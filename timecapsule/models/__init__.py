from .capsule import Capsule
from .send_log import SendLog
from .rate_limit import RateLimitDaily, RateLimitBucket
from .settings import Settings, PolicySettings

__all__ = [
    "Capsule",
    "SendLog",
    "RateLimitDaily",
    "RateLimitBucket",
    "Settings",
    "PolicySettings",
]
