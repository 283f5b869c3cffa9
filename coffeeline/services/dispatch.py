"""
Single and bulk SMS dispatch.

Recipients are sent one at a time in input order. A failure for one
recipient becomes that recipient's outcome and the batch carries on.
"""
from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from coffeeline.errors import GatewayError, PersistenceError, ValidationError
from coffeeline.services.message_log import MessageLogWriter, SendAttempt
from coffeeline.services.sms_gateway import TwilioGateway

logger = logging.getLogger(__name__)


def _text(value: Any) -> str:
    """JSON clients send phone numbers as numbers too."""
    return "" if value is None else str(value)


@dataclass(frozen=True)
class Recipient:
    phone: str
    body: str
    display_name: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Recipient":
        return cls(
            phone=_text(data.get("to") or data.get("phone")).strip(),
            body=_text(data.get("message") or data.get("body")),
            display_name=_text(data.get("customerName") or data.get("displayName")) or None,
        )


@dataclass
class RecipientOutcome:
    to: str
    display_name: Optional[str]
    success: bool
    message_id: Optional[str] = None
    status: Optional[str] = None
    error: Optional[str] = None
    log_error: Optional[str] = None

    def to_dict(self) -> dict:
        out: Dict[str, Any] = {
            "to": self.to,
            "customerName": self.display_name,
            "success": self.success,
        }
        if self.success:
            out["messageId"] = self.message_id
            out["status"] = self.status
        else:
            out["error"] = self.error
        if self.log_error:
            out["logError"] = self.log_error
        return out


@dataclass
class BulkResult:
    outcomes: List[RecipientOutcome] = field(default_factory=list)

    @property
    def total_sent(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def total_failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.success)

    @property
    def log_failures(self) -> int:
        return sum(1 for o in self.outcomes if o.log_error)

    def to_dict(self) -> dict:
        return {
            "success": True,
            "results": [o.to_dict() for o in self.outcomes],
            "totalSent": self.total_sent,
            "totalFailed": self.total_failed,
        }


class BulkDispatcher:
    def __init__(self, gateway: TwilioGateway, log_writer: Optional[MessageLogWriter] = None) -> None:
        self.gateway = gateway
        self.log_writer = log_writer

    def send_one(self, recipient: Recipient) -> RecipientOutcome:
        start = time.perf_counter()
        try:
            receipt = self.gateway.send(recipient.phone, recipient.body)
            outcome = RecipientOutcome(
                to=recipient.phone,
                display_name=recipient.display_name,
                success=True,
                message_id=receipt.provider_id,
                status=receipt.status,
            )
        except (GatewayError, ValidationError) as exc:
            outcome = RecipientOutcome(
                to=recipient.phone,
                display_name=recipient.display_name,
                success=False,
                error=getattr(exc, "reason", None) or str(exc),
            )
        latency_ms = int((time.perf_counter() - start) * 1000)

        log = logger.info if outcome.success else logger.warning
        log(json.dumps({
            "event": "sms_send",
            "to": recipient.phone,
            "outcome": "sent" if outcome.success else "failed",
            "provider_message_id": outcome.message_id,
            "error": outcome.error,
            "latency_ms": latency_ms,
        }))

        if self.log_writer is not None:
            try:
                self.log_writer.record(SendAttempt(
                    to=recipient.phone,
                    body=recipient.body,
                    success=outcome.success,
                    display_name=recipient.display_name,
                    provider_id=outcome.message_id,
                    provider_status=outcome.status,
                    error=outcome.error,
                ))
            except PersistenceError as exc:
                outcome.log_error = exc.reason
        return outcome

    def dispatch(self, recipients: Iterable[Recipient]) -> BulkResult:
        result = BulkResult()
        for recipient in recipients:
            result.outcomes.append(self.send_one(recipient))
        if result.outcomes:
            logger.info(json.dumps({
                "event": "sms_bulk",
                "total": len(result.outcomes),
                "sent": result.total_sent,
                "failed": result.total_failed,
                "log_failures": result.log_failures,
            }))
        return result
