"""Feedback persistence, filtering, aggregates and CSV export."""
from __future__ import annotations

import csv
import io
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Sequence

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError

from coffeeline.errors import PersistenceError
from coffeeline.extensions import db
from coffeeline.models import Feedback, RATING_LABELS
from coffeeline.utils.helpers import as_naive_utc, round_rating, utcnow
from coffeeline.utils.validators import strip_phone_separators

logger = logging.getLogger(__name__)

RECENT_WINDOW_DAYS = 7

CSV_HEADERS = [
    "Customer Name",
    "Phone Number",
    "Account Number",
    "Coffee Type",
    "Coffee Weight (kg)",
    "Customer Location",
    "Coffee Quality",
    "Delivery Experience",
    "Comments",
    "Date Submitted",
]


@dataclass(frozen=True)
class FeedbackFilter:
    search: Optional[str] = None
    quality: Optional[int] = None


@dataclass(frozen=True)
class FeedbackStats:
    total: int
    average_quality: float
    average_delivery: float
    recent: int

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "average_quality": self.average_quality,
            "average_delivery": self.average_delivery,
            "recent": self.recent,
        }


def create_feedback(user_id: Optional[int], cleaned: dict) -> Feedback:
    """``cleaned`` comes from validators.validate_feedback."""
    fb = Feedback(user_id=user_id, **cleaned)
    try:
        db.session.add(fb)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise PersistenceError(f"Could not save feedback: {type(exc).__name__}") from exc
    return fb


def list_feedback(flt: Optional[FeedbackFilter] = None) -> List[Feedback]:
    """Newest first. Search and quality compose with AND; absent means no filter."""
    flt = flt or FeedbackFilter()
    query = Feedback.query

    term = (flt.search or "").strip()
    if term:
        clauses = [
            Feedback.customer_name.icontains(term, autoescape=True),
            Feedback.phone_number.icontains(term, autoescape=True),
            Feedback.account_number.icontains(term, autoescape=True),
            Feedback.coffee_type.icontains(term, autoescape=True),
        ]
        # Phones are stored without separators; "555-010" must still find them
        phone_term = strip_phone_separators(term)
        if phone_term and phone_term != term:
            clauses.append(Feedback.phone_number.contains(phone_term, autoescape=True))
        query = query.filter(or_(*clauses))

    if flt.quality is not None:
        query = query.filter(Feedback.coffee_quality == flt.quality)

    # id breaks ties between rows written in the same instant
    return query.order_by(Feedback.created_at.desc(), Feedback.id.desc()).all()


def count_feedback() -> int:
    return db.session.query(func.count(Feedback.id)).scalar() or 0


def compute_stats(records: Sequence[Feedback], now: Optional[datetime] = None) -> FeedbackStats:
    """Derived on every call; nothing is stored."""
    total = len(records)
    if not total:
        return FeedbackStats(total=0, average_quality=0.0, average_delivery=0.0, recent=0)

    now = as_naive_utc(now) if now else utcnow()
    cutoff = now - timedelta(days=RECENT_WINDOW_DAYS)
    recent = sum(1 for r in records if r.created_at and as_naive_utc(r.created_at) >= cutoff)

    return FeedbackStats(
        total=total,
        average_quality=round_rating(sum(r.coffee_quality for r in records) / total),
        average_delivery=round_rating(sum(r.delivery_experience for r in records) / total),
        recent=recent,
    )


def rating_text(rating: int) -> str:
    return f"{rating} - {RATING_LABELS.get(rating, 'Unknown')}"


def export_csv(records: Iterable[Feedback]) -> str:
    buf = io.StringIO(newline="")
    w = csv.writer(buf, quoting=csv.QUOTE_ALL)
    w.writerow(CSV_HEADERS)
    for r in records:
        w.writerow([
            r.customer_name,
            r.phone_number,
            r.account_number,
            r.coffee_type,
            r.coffee_weight,
            r.customer_location,
            rating_text(r.coffee_quality),
            rating_text(r.delivery_experience),
            r.comments or "",
            r.created_at.strftime("%Y-%m-%d") if r.created_at else "",
        ])
    return buf.getvalue()


def export_filename(today: Optional[datetime] = None) -> str:
    return f"feedback-records-{(today or utcnow()).strftime('%Y-%m-%d')}.csv"


def list_customers() -> List[dict]:
    """One entry per phone number, taken from that customer's newest feedback."""
    seen = {}
    for r in Feedback.query.order_by(Feedback.created_at.desc(), Feedback.id.desc()).all():
        if r.phone_number in seen:
            continue
        seen[r.phone_number] = {
            "customer_name": r.customer_name,
            "phone_number": r.phone_number,
            "account_number": r.account_number,
            "customer_location": r.customer_location,
        }
    return list(seen.values())


def log_submission(fb: Feedback) -> None:
    # No customer PII beyond the record id
    logger.info(json.dumps({
        "event": "feedback_submitted",
        "feedback_id": fb.id,
        "user_id": fb.user_id,
        "coffee_quality": fb.coffee_quality,
        "delivery_experience": fb.delivery_experience,
    }))
