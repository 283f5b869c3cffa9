"""Error kinds shared by the form, messaging and storage layers."""

from __future__ import annotations

from typing import Dict, Optional


class ValidationError(ValueError):
    """One or more request fields are missing or invalid."""

    def __init__(self, errors: Dict[str, str]) -> None:
        self.errors = dict(errors)
        super().__init__("; ".join(f"{k}: {v}" for k, v in self.errors.items()) or "invalid input")


class GatewayError(RuntimeError):
    """The SMS provider rejected the request or could not be reached."""

    def __init__(self, reason: str, http_status: Optional[int] = None) -> None:
        self.reason = reason
        self.http_status = http_status
        super().__init__(reason)


class ConfigurationError(RuntimeError):
    """Provider credentials are missing."""


class PersistenceError(RuntimeError):
    """A data-store read or write failed."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)
