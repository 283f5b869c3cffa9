from datetime import datetime, timezone
from typing import Any, Optional


def utcnow() -> datetime:
    """Naive UTC timestamp; every DateTime column stores naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)

def as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value

def round_rating(value: Any) -> float:
    try:
        return round(float(value), 1)
    except (TypeError, ValueError):
        return 0.0

def safe_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return float(default)

def isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None
