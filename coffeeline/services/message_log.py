"""
Delivery log writer.

Every send attempt, successful or not, becomes exactly one ``SmsMessage``
row. A failed write raises ``PersistenceError``, never ``GatewayError``.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from coffeeline.errors import PersistenceError
from coffeeline.extensions import db
from coffeeline.models import SmsMessage
from coffeeline.models.sms_message import STATUS_DELIVERED, STATUS_FAILED, STATUS_PENDING, STATUS_SENT
from coffeeline.utils.helpers import utcnow

logger = logging.getLogger(__name__)

UNKNOWN_RECIPIENT = "Unknown"


@dataclass
class SendAttempt:
    to: str
    body: str
    success: bool
    display_name: Optional[str] = None
    provider_id: Optional[str] = None
    provider_status: Optional[str] = None
    error: Optional[str] = None
    attempted_at: datetime = field(default_factory=utcnow)


class MessageLogWriter:
    def __init__(self, user_id: Optional[int], session=None) -> None:
        self.user_id = user_id
        self._session = session or db.session

    def record(self, attempt: SendAttempt) -> SmsMessage:
        entry = SmsMessage(
            user_id=self.user_id,
            recipient_phone=attempt.to,
            recipient_name=attempt.display_name or UNKNOWN_RECIPIENT,
            message=attempt.body or "",
            status=STATUS_SENT if attempt.success else STATUS_FAILED,
            provider_message_id=attempt.provider_id,
            error=(attempt.error or "")[:500] or None,
            sent_at=attempt.attempted_at if attempt.success else None,
            created_at=attempt.attempted_at,
        )
        try:
            self._session.add(entry)
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            logger.error(json.dumps({
                "event": "sms_log_write_failed",
                "to": attempt.to,
                "success": attempt.success,
                "provider_message_id": attempt.provider_id,
                "error": type(exc).__name__,
            }))
            raise PersistenceError(f"Could not save message log: {type(exc).__name__}") from exc
        return entry


# ----- History & status reconciliation -----

SENT_LIKE = (STATUS_SENT, STATUS_DELIVERED)
HISTORY_FILTERS = ("all", "sent", "failed")

# Twilio MessageStatus -> our status
_PROVIDER_STATUS_MAP = {
    "accepted": STATUS_SENT,
    "scheduled": STATUS_SENT,
    "queued": STATUS_SENT,
    "sending": STATUS_SENT,
    "sent": STATUS_SENT,
    "delivered": STATUS_DELIVERED,
    "read": STATUS_DELIVERED,
    "failed": STATUS_FAILED,
    "undelivered": STATUS_FAILED,
    "canceled": STATUS_FAILED,
}
_TERMINAL = (STATUS_DELIVERED, STATUS_FAILED)


def list_messages(user_id: Optional[int] = None, status_filter: str = "all") -> List[SmsMessage]:
    """Newest first; ``user_id=None`` means every user (admin view)."""
    query = SmsMessage.query
    if user_id is not None:
        query = query.filter(SmsMessage.user_id == user_id)
    if status_filter == "sent":
        query = query.filter(SmsMessage.status.in_(SENT_LIKE))
    elif status_filter == "failed":
        query = query.filter(SmsMessage.status == STATUS_FAILED)
    return query.order_by(SmsMessage.created_at.desc(), SmsMessage.id.desc()).all()


def history_counts(messages: List[SmsMessage]) -> dict:
    return {
        "total": len(messages),
        "sent": sum(1 for m in messages if m.status in SENT_LIKE),
        "failed": sum(1 for m in messages if m.status == STATUS_FAILED),
        "pending": sum(1 for m in messages if m.status == STATUS_PENDING),
    }


def map_provider_status(provider_status: str) -> Optional[str]:
    return _PROVIDER_STATUS_MAP.get((provider_status or "").strip().lower())


def apply_status_callback(provider_message_id: str, provider_status: str, error: Optional[str] = None) -> Optional[SmsMessage]:
    """
    Move the log entry for ``provider_message_id`` to the mapped status.
    Returns None when no entry matches. Terminal statuses are never downgraded.
    """
    entry = SmsMessage.query.filter_by(provider_message_id=provider_message_id).first()
    if entry is None:
        return None

    new_status = map_provider_status(provider_status)
    if new_status is None or entry.status in _TERMINAL or new_status == entry.status:
        return entry

    entry.status = new_status
    if new_status == STATUS_FAILED and error:
        entry.error = error[:500]
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise PersistenceError(f"Could not update message status: {type(exc).__name__}") from exc
    return entry
