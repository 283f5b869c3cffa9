from coffeeline.extensions import db
from coffeeline.utils.helpers import utcnow, isoformat

STATUS_PENDING = "pending"
STATUS_SENT = "sent"
STATUS_DELIVERED = "delivered"
STATUS_FAILED = "failed"
STATUSES = (STATUS_PENDING, STATUS_SENT, STATUS_DELIVERED, STATUS_FAILED)

class SmsMessage(db.Model):
    """Delivery log: one row per send attempt."""
    __tablename__ = "sms_messages"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    recipient_phone = db.Column(db.String(32), nullable=False, index=True)
    recipient_name = db.Column(db.String(200), nullable=False, default="Unknown")
    message = db.Column(db.Text, nullable=False)
    status = db.Column(db.String(20), nullable=False, default=STATUS_PENDING, index=True)  # pending|sent|delivered|failed
    provider_message_id = db.Column(db.String(64), nullable=True, index=True)
    error = db.Column(db.String(500), nullable=True)
    sent_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "recipient_phone": self.recipient_phone,
            "recipient_name": self.recipient_name,
            "message": self.message,
            "status": self.status,
            "provider_message_id": self.provider_message_id,
            "error": self.error,
            "sent_at": isoformat(self.sent_at),
            "created_at": isoformat(self.created_at),
        }

    def __repr__(self) -> str:
        return f"<SmsMessage id={self.id} to={self.recipient_phone} status={self.status}>"
