"""
Shared in-memory collaborators for the notification tests.

    FakeDirectory          — RecipientDirectory over a dict, records clears
    FakeConversationStore  — ConversationStore over a list of messages
    FakeGateway            — PushGateway that records every call and can be
                             told to reject tokens or fail whole batches
"""

from __future__ import annotations

import asyncio
from typing import Dict, Iterable, List, Optional, Sequence

import pytest

from backend.app.core.config import Settings
from backend.app.core.errors import PersistenceError, PushGatewayError
from backend.app.notifications.channels.gateway import (
    GatewayBatchResponse,
    GatewayItemResult,
    PushMessage,
)
from backend.app.notifications.handlers import NotificationHandlers
from backend.app.notifications.models import (
    Channel,
    ChatMessage,
    ConversationSummary,
    Recipient,
)


class FakeDirectory:

    def __init__(self, recipients: Iterable[Recipient] = ()):
        self.records: Dict[str, Recipient] = {r.recipient_id: r for r in recipients}
        self.cleared: List[tuple] = []
        self.fail_clear = False
        self.fail_list = False

    async def get_recipient(self, recipient_id: str) -> Optional[Recipient]:
        return self.records.get(recipient_id)

    async def list_recipients(self) -> List[Recipient]:
        if self.fail_list:
            raise PersistenceError("list_recipients", "directory unavailable")
        return list(self.records.values())

    async def clear_token(self, recipient_id: str, channel: Channel) -> None:
        if self.fail_clear:
            raise PersistenceError("clear_token", "directory unavailable")
        self.cleared.append((recipient_id, channel))
        record = self.records.get(recipient_id)
        if record is None:
            return
        if channel == Channel.MOBILE:
            record.mobile_token = None
        else:
            record.web_token = None


class FakeConversationStore:

    def __init__(self):
        self.messages: List[ChatMessage] = []
        self.summaries: Dict[str, dict] = {}

    async def count_messages(self, owner_id: str, sender_id: str) -> int:
        return sum(
            1 for m in self.messages
            if m.owner_id == owner_id and m.sender_id == sender_id
        )

    async def add_message(self, message: ChatMessage) -> None:
        self.messages.append(message)

    async def upsert_conversation_summary(self, summary: ConversationSummary) -> None:
        self.summaries.setdefault(summary.owner_id, {}).update(summary.changed_fields())


class FakeGateway:
    """
    Parameters
    ----------
    errors : dict
        token → gateway error code for tokens the gateway rejects.
    fail_batches : iterable of int
        1-based ``send_each`` call numbers that raise instead of answering.
    delay : float
        Seconds every call sleeps before answering.
    """

    def __init__(
        self,
        errors: Optional[Dict[str, str]] = None,
        fail_batches: Iterable[int] = (),
        delay: float = 0.0,
    ):
        self.errors = errors or {}
        self.fail_batches = set(fail_batches)
        self.delay = delay
        self.batches: List[List[PushMessage]] = []
        self.sent: List[PushMessage] = []

    @property
    def all_messages(self) -> List[PushMessage]:
        return [m for batch in self.batches for m in batch] + list(self.sent)

    async def send_each(self, messages: Sequence[PushMessage]) -> GatewayBatchResponse:
        self.batches.append(list(messages))
        if self.delay:
            await asyncio.sleep(self.delay)
        if len(self.batches) in self.fail_batches:
            raise PushGatewayError("service unavailable", code="messaging/unavailable")
        responses = []
        for i, message in enumerate(messages):
            code = self.errors.get(message.token)
            if code:
                responses.append(GatewayItemResult(success=False, error_code=code))
            else:
                responses.append(GatewayItemResult(success=True, message_id=f"msg-{i}"))
        return GatewayBatchResponse(responses=responses)

    async def send(self, message: PushMessage) -> str:
        self.sent.append(message)
        if self.delay:
            await asyncio.sleep(self.delay)
        code = self.errors.get(message.token)
        if code:
            raise PushGatewayError("rejected", code=code)
        return f"msg-single-{len(self.sent)}"


# ═══════════════════════════════════════════════════════════════════════════
# Recipient helpers
# ═══════════════════════════════════════════════════════════════════════════

def mobile_user(rid: str, name: str = "Resident", email: Optional[str] = None) -> Recipient:
    return Recipient(rid, display_name=name, mobile_token=f"{rid}-mobile", email=email)


def web_admin(rid: str, name: str = "Admin") -> Recipient:
    return Recipient(rid, display_name=name, web_token=f"{rid}-web")


@pytest.fixture
def directory() -> FakeDirectory:
    return FakeDirectory([
        mobile_user("resident-1", "Juan Dela Cruz", "juan@example.com"),
        mobile_user("resident-2", "Maria Santos"),
        web_admin("admin-1", "Admin One"),
        web_admin("admin-2", "Admin Two"),
        Recipient("hybrid-1", "Hybrid", mobile_token="hybrid-1-mobile", web_token="hybrid-1-web"),
        Recipient("no-tokens", "Fresh Admin"),
    ])


@pytest.fixture
def conversations() -> FakeConversationStore:
    return FakeConversationStore()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def config() -> Settings:
    return Settings(
        PUSH_BATCH_SIZE=500,
        PUSH_BATCH_TIMEOUT_SECONDS=1.0,
        BRAND_NAME="AcciZard Lucban",
        WELCOME_MESSAGE="Thank you for reaching out!",
    )


@pytest.fixture
def handlers(directory, conversations, gateway, config) -> NotificationHandlers:
    return NotificationHandlers(directory, conversations, gateway, config=config)
