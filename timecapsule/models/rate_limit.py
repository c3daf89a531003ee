from timecapsule.extensions import db


class RateLimitDaily(db.Model):
    __tablename__ = "rate_limit_daily"

    ip = db.Column(db.String(64), primary_key=True)
    ymd = db.Column(db.String(10), primary_key=True)
    count = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.BigInteger, nullable=False)


class RateLimitBucket(db.Model):
    __tablename__ = "rate_limit_bucket"

    ip = db.Column(db.String(64), primary_key=True)
    bucket = db.Column(db.String(12), primary_key=True)  # YYYYMMDDHHM0
    count = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.BigInteger, nullable=False)
