from coffeeline.extensions import db
from coffeeline.utils.helpers import utcnow, isoformat

class MessageTemplate(db.Model):
    __tablename__ = "message_templates"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    content = db.Column(db.Text, nullable=False)
    # Derived from content on save; never edited on its own
    variables = db.Column(db.JSON, nullable=False, default=list)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "content": self.content,
            "variables": list(self.variables or []),
            "created_at": isoformat(self.created_at),
        }

    def __repr__(self) -> str:
        return f"<MessageTemplate id={self.id} name={self.name!r}>"
