from timecapsule.extensions import db

# sentinel owner for provider events that match no capsule
UNKNOWN_CAPSULE_ID = "unknown"

OUTCOME_SUCCESS = "success"
OUTCOME_FAIL = "fail"
OUTCOME_EVENT = "event"


class SendLog(db.Model):
    """Append-only audit trail of dispatch attempts and inbound provider events."""

    __tablename__ = "sends_log"

    id = db.Column(db.String(36), primary_key=True)
    capsule_id = db.Column(db.String(36), nullable=False, index=True)
    sent_at = db.Column(db.BigInteger, nullable=False)
    status = db.Column(db.String(16), nullable=False)  # success|fail|event
    error = db.Column(db.Text, nullable=True)
    provider_email_id = db.Column(db.String(128), nullable=True)
    event = db.Column(db.String(64), nullable=True)  # api_sent|api_failed|email.delivered|...

    def __repr__(self) -> str:
        return f"<SendLog id={self.id} capsule={self.capsule_id} status={self.status} event={self.event}>"
