"""
Delivery QR payloads.

Labels on the bags encode ``type:Arabica;weight:2.5;location:Main St``.
Decoding the image happens in the browser; the server only parses text.
"""
import re
from dataclasses import dataclass, asdict
from typing import Protocol

from coffeeline.errors import ValidationError


_NUMBER_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)")


class Scanner(Protocol):
    def decode(self) -> str: ...


@dataclass(frozen=True)
class QRPrefill:
    coffee_type: str
    coffee_weight: float
    customer_location: str

    def to_dict(self) -> dict:
        return asdict(self)


def _leading_float(value) -> float:
    """Leading number like a lenient float parse: 2.5kg -> 2.5, none -> 0.0."""
    m = _NUMBER_RE.match((value or "").strip())
    return float(m.group(0)) if m else 0.0


def parse_qr_payload(text: str) -> QRPrefill:
    fields = {}
    for item in (text or "").split(";"):
        key, sep, value = item.partition(":")
        key, value = key.strip().lower(), value.strip()
        if sep and key and value:
            fields[key] = value

    if not fields:
        raise ValidationError({"text": "Invalid QR code format."})

    return QRPrefill(
        coffee_type=fields.get("type", ""),
        coffee_weight=_leading_float(fields.get("weight")),
        customer_location=fields.get("location", ""),
    )


def scan(scanner: Scanner) -> QRPrefill:
    return parse_qr_payload(scanner.decode())
