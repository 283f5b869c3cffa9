import math
import re
from typing import Any, Mapping

from coffeeline.errors import ValidationError

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_PHONE_STRIP_RE = re.compile(r"[\s().\-]")
_PHONE_RE = re.compile(r"^\+?\d{7,15}$")

REQUIRED_FEEDBACK_TEXT = {
    "customer_name": ("Customer name is required.", 200),
    "phone_number": ("Phone number is required.", 32),
    "account_number": ("Account number is required.", 64),
    "coffee_type": ("Coffee type is required.", 100),
    "customer_location": ("Customer location is required.", 200),
}

def clean_str(val: Any, max_len: int = 255) -> str | None:
    """
    Collapse whitespace, trim, enforce max length. Returns None if empty after cleaning.
    """
    if val is None:
        return None
    s = re.sub(r"\s+", " ", str(val)).strip()
    if not s:
        return None
    return s[:max_len]

def is_valid_email(val: str | None) -> bool:
    if not val:
        return False
    return bool(_EMAIL_RE.match(val))

def strip_phone_separators(val: str) -> str:
    return _PHONE_STRIP_RE.sub("", val)

def normalize_phone(val: Any) -> str | None:
    """
    Strip spaces, dots, dashes and parentheses; keep a leading '+'.
    Returns None unless 7-15 digits remain.
    """
    if not val:
        return None
    s = strip_phone_separators(str(val).strip())
    if not _PHONE_RE.match(s):
        return None
    return s

def parse_rating(val: Any) -> int | None:
    """Integer 1..5 or None. Accepts "4" and 4.0, rejects 4.5 and bools."""
    if isinstance(val, bool) or val is None or val == "":
        return None
    try:
        f = float(val)
    except (TypeError, ValueError):
        return None
    if not f.is_integer():
        return None
    n = int(f)
    return n if 1 <= n <= 5 else None

def validate_feedback(data: Mapping[str, Any]) -> dict:
    """
    Clean a feedback submission. Raises ValidationError naming every bad field.
    """
    errors = {}
    out = {}

    for field, (message, max_len) in REQUIRED_FEEDBACK_TEXT.items():
        value = clean_str(data.get(field), max_len=max_len)
        if not value:
            errors[field] = message
        out[field] = value

    if out.get("phone_number") and not normalize_phone(out["phone_number"]):
        errors["phone_number"] = "Phone number is not valid."
    elif out.get("phone_number"):
        out["phone_number"] = normalize_phone(out["phone_number"])

    raw_weight = data.get("coffee_weight")
    try:
        weight = round(float(raw_weight), 3)
        if not math.isfinite(weight) or weight < 0:
            raise ValueError()
        out["coffee_weight"] = weight
    except (TypeError, ValueError):
        errors["coffee_weight"] = "Coffee weight must be a non-negative number."

    for field, label in (("coffee_quality", "Coffee quality"), ("delivery_experience", "Delivery experience")):
        rating = parse_rating(data.get(field))
        if rating is None:
            errors[field] = f"{label} must be a rating from 1 to 5."
        out[field] = rating

    out["comments"] = clean_str(data.get("comments"), max_len=2000)

    if errors:
        raise ValidationError(errors)
    return out
