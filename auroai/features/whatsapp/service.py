"""
WhatsApp connection through the external automation workflow.

The automation workflow owns the WhatsApp side (sending and checking the
6-digit code, tearing the session down); this module posts JSON to its three
webhooks and keeps the profile's number/connected flag in sync.

Flow:
1. connect: store the number, ask the workflow to send a code
2. verify: forward the code; ``{"status": true}`` marks the number connected
3. disconnect: tell the workflow, then clear number and flag
"""
import re
from typing import Any, Dict, Optional

import httpx

from auroai.core.config import settings
from auroai.core.errors import ConfigurationError, NotFoundError, UpstreamError, ValidationError
from auroai.core.logging import log_event
from auroai.features.profiles.store import ProfileStore
from auroai.models.profile import SubscriptionProfile

DDI_PATTERN = re.compile(r"^\d{1,3}$")
DDD_PATTERN = re.compile(r"^\d{2}$")
NUMBER_PATTERN = re.compile(r"^\d{8,9}$")
CODE_PATTERN = re.compile(r"^\d{6}$")


class AutomationError(UpstreamError):
    code = "automation_error"


def _digits(value: Optional[str]) -> str:
    return re.sub(r"\D", "", value or "")


def build_phone_number(ddi: str, ddd: str, number: str) -> str:
    """Join country code, area code and subscriber number (digits only)."""
    ddi, ddd, number = _digits(ddi), _digits(ddd), _digits(number)
    if not DDI_PATTERN.match(ddi):
        raise ValidationError("ddi must have 1 to 3 digits")
    if not DDD_PATTERN.match(ddd):
        raise ValidationError("ddd must have 2 digits")
    if not NUMBER_PATTERN.match(number):
        raise ValidationError("number must have 8 or 9 digits")
    return f"{ddi}{ddd}{number}"


class AutomationClient:
    """JSON POSTs to the automation workflow webhooks."""

    def __init__(
        self,
        connect_url: Optional[str],
        verify_url: Optional[str],
        disconnect_url: Optional[str],
        timeout_seconds: float = 15.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.connect_url = connect_url
        self.verify_url = verify_url
        self.disconnect_url = disconnect_url
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def _post(self, action: str, url: Optional[str], payload: Dict[str, Any]) -> httpx.Response:
        if not url:
            raise ConfigurationError(f"Automation webhook for '{action}' is not configured")
        try:
            with httpx.Client(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = client.post(url, json=payload)
        except httpx.HTTPError as e:
            log_event("error", "automation.request_failed", user_id=payload.get("user_id"), extra={"action": action, "error": e})
            raise AutomationError(f"Automation webhook '{action}' unreachable") from e

        if response.status_code >= 400:
            log_event(
                "error",
                "automation.bad_status",
                user_id=payload.get("user_id"),
                extra={"action": action, "status": response.status_code},
            )
            raise AutomationError(f"Automation webhook '{action}' returned {response.status_code}")
        return response

    def request_code(self, phone_number: str, user_id: str) -> None:
        self._post("connect", self.connect_url, {"phone_number": phone_number, "user_id": user_id})

    def verify_code(self, phone_number: str, code: str, user_id: str) -> bool:
        response = self._post(
            "verify",
            self.verify_url,
            {"phone_number": phone_number, "code": code, "user_id": user_id},
        )
        try:
            body = response.json()
        except ValueError as e:
            raise AutomationError("Automation webhook 'verify' returned invalid JSON") from e
        return isinstance(body, dict) and body.get("status") is True

    def disconnect(self, phone_number: str, user_id: str) -> None:
        self._post("disconnect", self.disconnect_url, {"user_id": user_id, "phone_number": phone_number})


class WhatsAppService:
    def __init__(self, client: AutomationClient, store: Optional[ProfileStore] = None):
        self.client = client
        self.store = store or ProfileStore()

    def connect(self, user_id: str, ddi: str, ddd: str, number: str) -> str:
        """Save the number and request a verification code. Returns the full number."""
        phone_number = build_phone_number(ddi, ddd, number)
        self.store.ensure(user_id)
        # Saved before the workflow call so a later verify knows the number
        self.store.update_fields(user_id, whatsapp_number=phone_number, whatsapp_connected=False)
        self.client.request_code(phone_number, user_id)
        log_event("info", "whatsapp.code_requested", user_id=user_id)
        return phone_number

    def verify(self, user_id: str, code: str) -> bool:
        code = (code or "").strip()
        if not CODE_PATTERN.match(code):
            raise ValidationError("code must have 6 digits")
        profile = self._require_number(user_id)

        if not self.client.verify_code(profile.whatsapp_number, code, user_id):
            log_event("info", "whatsapp.code_rejected", user_id=user_id)
            return False

        self.store.update_fields(user_id, whatsapp_connected=True)
        log_event("info", "whatsapp.connected", user_id=user_id)
        return True

    def disconnect(self, user_id: str) -> None:
        profile = self._require_number(user_id)
        self.client.disconnect(profile.whatsapp_number, user_id)
        self.store.update_fields(user_id, whatsapp_connected=False, whatsapp_number=None)
        log_event("info", "whatsapp.disconnected", user_id=user_id)

    def _require_number(self, user_id: str) -> SubscriptionProfile:
        profile = self.store.get(user_id)
        if profile is None or not profile.whatsapp_number:
            raise NotFoundError("WhatsApp number not found")
        return profile


def get_whatsapp_service() -> WhatsAppService:
    return WhatsAppService(
        AutomationClient(
            connect_url=settings.AUTOMATION_CONNECT_URL,
            verify_url=settings.AUTOMATION_VERIFY_URL,
            disconnect_url=settings.AUTOMATION_DISCONNECT_URL,
            timeout_seconds=settings.AUTOMATION_TIMEOUT_SECONDS,
        )
    )
