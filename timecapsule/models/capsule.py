from sqlalchemy import text
from timecapsule.extensions import db

STATUS_PENDING = "pending"
STATUS_DISPATCHING = "dispatching"
STATUS_SENT = "sent"
STATUS_DELIVERED = "delivered"
STATUS_BOUNCED = "bounced"
STATUS_FAILED = "failed"
STATUS_DELETED = "deleted"

STATUSES = (
    STATUS_PENDING,
    STATUS_DISPATCHING,
    STATUS_SENT,
    STATUS_DELIVERED,
    STATUS_BOUNCED,
    STATUS_FAILED,
    STATUS_DELETED,
)


class Capsule(db.Model):
    __tablename__ = "capsules"

    id = db.Column(db.String(36), primary_key=True)  # uuid4, immutable
    email = db.Column(db.String(320), nullable=False)
    content = db.Column(db.Text, nullable=False)
    signer = db.Column(db.String(200), nullable=True)
    contact = db.Column(db.String(255), nullable=True)
    ip_addr = db.Column(db.String(64), nullable=True, index=True)

    # epoch seconds; *_ymd are the UTC+8 civil dates of the same instants
    send_at = db.Column(db.BigInteger, nullable=False)
    send_at_ymd = db.Column(db.String(10), nullable=False, index=True)
    created_at = db.Column(db.BigInteger, nullable=False)
    created_on_ymd = db.Column(db.String(10), nullable=False, index=True)

    status = db.Column(db.String(20), nullable=False, server_default=text("'pending'"))
    last_error = db.Column(db.Text, nullable=True)
    provider_email_id = db.Column(db.String(128), nullable=True, index=True)
    sent_at = db.Column(db.BigInteger, nullable=True)
    delivered_at = db.Column(db.BigInteger, nullable=True)
    bounced_at = db.Column(db.BigInteger, nullable=True)
    bounce_reason = db.Column(db.Text, nullable=True)

    # dispatch lease held by one sweeper while the transport call is in flight
    claimed_by = db.Column(db.String(64), nullable=True)
    claim_expires_at = db.Column(db.BigInteger, nullable=True)

    __table_args__ = (
        db.Index("idx_capsules_status_sendat", "status", "send_at"),
    )

    def to_admin_dict(self) -> dict:
        return dict(
            id=self.id,
            email=self.email,
            content=self.content,
            signer=self.signer,
            contact=self.contact,
            ip_addr=self.ip_addr,
            send_at=self.send_at,
            created_at=self.created_at,
            status=self.status,
            last_error=self.last_error,
            provider_email_id=self.provider_email_id,
            sent_at=self.sent_at,
            delivered_at=self.delivered_at,
            bounced_at=self.bounced_at,
            bounce_reason=self.bounce_reason,
        )

    def __repr__(self) -> str:
        return f"<Capsule id={self.id} status={self.status!r} send_at={self.send_at}>"
