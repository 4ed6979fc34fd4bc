"""
gateway.py — Push gateway contract.

The gateway accepts up to GATEWAY_BATCH_LIMIT {token, payload} pairs per
call and answers with one result per message, in input order:

    {successCount, failureCount, responses: [{success, errorCode?}, ...]}

Error codes
-----------
Only one family matters to the engine: codes meaning the destination
token is permanently unusable. Everything else is treated as transient.

    messaging/invalid-registration-token        malformed token
    messaging/registration-token-not-registered app uninstalled / token rotated
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Sequence

from backend.app.core.errors import PushGatewayError
from backend.app.notifications.models import NotificationPayload

GATEWAY_BATCH_LIMIT = 500

INVALID_REGISTRATION_TOKEN = "messaging/invalid-registration-token"
TOKEN_NOT_REGISTERED = "messaging/registration-token-not-registered"

INVALID_DESTINATION_CODES = frozenset({
    INVALID_REGISTRATION_TOKEN,
    TOKEN_NOT_REGISTERED,
})


def is_invalid_destination(code: Optional[str]) -> bool:
    return code in INVALID_DESTINATION_CODES


@dataclass(frozen=True)
class PushMessage:
    """One payload addressed to one device token."""
    token: str
    payload: NotificationPayload


@dataclass(frozen=True)
class GatewayItemResult:
    success: bool
    error_code: Optional[str] = None
    message_id: Optional[str] = None


@dataclass
class GatewayBatchResponse:
    responses: List[GatewayItemResult] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.responses if r.success)

    @property
    def failure_count(self) -> int:
        return sum(1 for r in self.responses if not r.success)


class PushGateway(Protocol):
    """Anything that can push messages to device tokens."""

    async def send_each(self, messages: Sequence[PushMessage]) -> GatewayBatchResponse:
        """Send every message; raise PushGatewayError if the call itself fails."""
        ...

    async def send(self, message: PushMessage) -> str:
        """Send one message and return its id; raise PushGatewayError on failure."""
        ...


__all__ = [
    "GATEWAY_BATCH_LIMIT",
    "INVALID_DESTINATION_CODES",
    "INVALID_REGISTRATION_TOKEN",
    "TOKEN_NOT_REGISTERED",
    "GatewayBatchResponse",
    "GatewayItemResult",
    "PushGateway",
    "PushGatewayError",
    "PushMessage",
    "is_invalid_destination",
]
