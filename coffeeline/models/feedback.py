from coffeeline.extensions import db
from coffeeline.utils.helpers import utcnow, isoformat

RATING_LABELS = {
    5: "Excellent",
    4: "Good",
    3: "Average",
    2: "Poor",
    1: "Not Satisfied",
}

class Feedback(db.Model):
    """One customer's ratings for one delivery."""
    __tablename__ = "feedback"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    customer_name = db.Column(db.String(200), nullable=False)
    phone_number = db.Column(db.String(32), nullable=False, index=True)
    account_number = db.Column(db.String(64), nullable=False)

    coffee_type = db.Column(db.String(100), nullable=False)
    coffee_weight = db.Column(db.Float, nullable=False, default=0.0)  # kg
    customer_location = db.Column(db.String(200), nullable=False)

    coffee_quality = db.Column(db.Integer, nullable=False)
    delivery_experience = db.Column(db.Integer, nullable=False)
    comments = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        db.CheckConstraint("coffee_quality BETWEEN 1 AND 5", name="ck_feedback_quality_range"),
        db.CheckConstraint("delivery_experience BETWEEN 1 AND 5", name="ck_feedback_delivery_range"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "customer_name": self.customer_name,
            "phone_number": self.phone_number,
            "account_number": self.account_number,
            "coffee_type": self.coffee_type,
            "coffee_weight": self.coffee_weight,
            "customer_location": self.customer_location,
            "coffee_quality": self.coffee_quality,
            "delivery_experience": self.delivery_experience,
            "comments": self.comments,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }

    def __repr__(self) -> str:
        return f"<Feedback id={self.id} customer={self.customer_name!r} quality={self.coffee_quality}>"
