"""
directory.py — Recipient directory and conversation store contracts.

The document database is an external collaborator. Handlers only see these
two protocols, injected at construction time, so tests substitute
in-memory fakes and production uses ``storage.SqlNotificationStore``.

Mutations are expressed as field clears and merge upserts, never as
read-modify-write sequences, so concurrent trigger invocations touching
the same record need no locking.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Protocol

from backend.app.notifications.classifier import is_mobile_actor
from backend.app.notifications.models import (
    Channel,
    ChatMessage,
    ConversationSummary,
    DeliveryTarget,
    Recipient,
)


class RecipientDirectory(Protocol):

    async def get_recipient(self, recipient_id: str) -> Optional[Recipient]:
        ...

    async def list_recipients(self) -> List[Recipient]:
        ...

    async def clear_token(self, recipient_id: str, channel: Channel) -> None:
        """Clear one token field on the record; the record itself stays."""
        ...


class ConversationStore(Protocol):

    async def count_messages(self, owner_id: str, sender_id: str) -> int:
        """Stored messages in ``owner_id``'s conversation sent by ``sender_id``."""
        ...

    async def add_message(self, message: ChatMessage) -> None:
        ...

    async def upsert_conversation_summary(self, summary: ConversationSummary) -> None:
        """Merge the non-``None`` summary fields into the stored record."""
        ...


# ═══════════════════════════════════════════════════════════════════════════
# Target selection
# ═══════════════════════════════════════════════════════════════════════════

def web_targets(
    recipients: Iterable[Recipient],
    *,
    exclude: Iterable[str] = (),
) -> List[DeliveryTarget]:
    """Every recipient holding a web token, minus ``exclude`` ids."""
    skip = set(exclude)
    return [
        DeliveryTarget(r.recipient_id, Channel.WEB, r.web_token)
        for r in recipients
        if r.web_token and r.recipient_id not in skip
    ]


def mobile_targets(recipients: Iterable[Recipient]) -> List[DeliveryTarget]:
    """Mobile actors only: a mobile token and no web token."""
    return [
        DeliveryTarget(r.recipient_id, Channel.MOBILE, r.mobile_token)
        for r in recipients
        if is_mobile_actor(r.mobile_token, r.web_token)
    ]


def mobile_target(recipient: Recipient) -> Optional[DeliveryTarget]:
    """The recipient's mobile token as a single target, if registered."""
    if not recipient.mobile_token:
        return None
    return DeliveryTarget(recipient.recipient_id, Channel.MOBILE, recipient.mobile_token)
