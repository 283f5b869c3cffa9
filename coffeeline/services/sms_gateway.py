"""
Twilio Messages API client.

One call to ``send`` is one POST to ``/Accounts/<sid>/Messages.json``:
form-encoded ``From``/``To``/``Body``, HTTP Basic auth with the account
sid and auth token. No retries here; callers decide.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import requests

from coffeeline.errors import ConfigurationError, GatewayError, ValidationError


@dataclass(frozen=True)
class TwilioSettings:
    account_sid: str
    auth_token: str
    from_number: str
    api_base: str = "https://api.twilio.com/2010-04-01"
    timeout: float = 15.0
    status_callback_url: Optional[str] = None

    @property
    def messages_url(self) -> str:
        return f"{self.api_base.rstrip('/')}/Accounts/{self.account_sid}/Messages.json"

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "TwilioSettings":
        sid = config.get("TWILIO_ACCOUNT_SID")
        token = config.get("TWILIO_AUTH_TOKEN")
        number = config.get("TWILIO_PHONE_NUMBER")
        if not sid or not token or not number:
            raise ConfigurationError("Twilio credentials not configured")
        return cls(
            account_sid=sid,
            auth_token=token,
            from_number=number,
            api_base=config.get("TWILIO_API_BASE") or cls.api_base,
            timeout=float(config.get("SMS_TIMEOUT_SECONDS") or cls.timeout),
            status_callback_url=config.get("SMS_STATUS_CALLBACK_URL") or None,
        )


@dataclass(frozen=True)
class SendReceipt:
    provider_id: str
    status: str


class TwilioGateway:
    def __init__(
        self,
        settings: TwilioSettings,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._settings = settings
        self._session = session or requests.Session()

    @classmethod
    def from_config(cls, config: Mapping[str, Any], session: Optional[requests.Session] = None) -> "TwilioGateway":
        return cls(TwilioSettings.from_config(config), session=session)

    def send(self, to: str, body: str) -> SendReceipt:
        to = (to or "").strip()
        if not to or not body:
            raise ValidationError({
                k: "required" for k, v in (("to", to), ("message", body)) if not v
            })

        form: Dict[str, str] = {
            "From": self._settings.from_number,
            "To": to,
            "Body": body,
        }
        if self._settings.status_callback_url:
            form["StatusCallback"] = self._settings.status_callback_url

        try:
            resp = self._session.post(
                self._settings.messages_url,
                data=form,
                auth=(self._settings.account_sid, self._settings.auth_token),
                timeout=self._settings.timeout,
            )
        except requests.RequestException as exc:
            raise GatewayError(f"Twilio unreachable: {exc}") from exc

        try:
            data = resp.json()
        except ValueError:
            data = {}

        if not 200 <= resp.status_code < 300:
            message = (data.get("message") if isinstance(data, dict) else None) or resp.reason or "request rejected"
            raise GatewayError(f"Twilio API Error: {message}", http_status=resp.status_code)

        if not isinstance(data, dict) or not data.get("sid") or not data.get("status"):
            raise GatewayError("Twilio API Error: malformed response", http_status=resp.status_code)

        return SendReceipt(provider_id=data["sid"], status=data["status"])


def build_gateway(config: Optional[Mapping[str, Any]] = None) -> TwilioGateway:
    """Gateway for the current app; raises ConfigurationError without credentials."""
    if config is None:
        from flask import current_app
        config = current_app.config
    return TwilioGateway.from_config(config)
