"""
welcome.py — Automatic welcome reply on a mobile user's first chat message.

The trigger fires after the message is stored, so a count of exactly one
stored message for (conversation owner, sender) means the triggering
message is the first one. The welcome message is authored by the system
sender, so it never counts towards that pair and never re-triggers itself.

Known limitation: the count is the only safeguard and there is no
transaction around it. Two first messages stored before either trigger
counts both see 2 and no welcome is sent; a store with lagging reads can
let both see 1 and send two.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from backend.app.notifications.directory import ConversationStore, RecipientDirectory
from backend.app.notifications.events import ChatMessageEvent
from backend.app.notifications.models import (
    SYSTEM_SENDER_ID,
    ChatMessage,
    ConversationSummary,
)

logger = logging.getLogger(__name__)

PREVIEW_LIMIT = 100


async def is_first_message(store: ConversationStore, owner_id: str, sender_id: str) -> bool:
    return await store.count_messages(owner_id, sender_id) == 1


async def send_welcome_if_first(
    store: ConversationStore,
    directory: RecipientDirectory,
    event: ChatMessageEvent,
    *,
    brand: str,
    text: str,
    now: Optional[datetime] = None,
) -> bool:
    """
    Persist the welcome reply when ``event`` is the sender's first message.

    Returns True when a welcome message was written. Persistence failures
    are logged and reported as False; they never abort the fan-out.
    """
    try:
        if not await is_first_message(store, event.owner_id, event.sender_id):
            return False
    except Exception as exc:
        logger.error("Could not count messages for %s: %s", event.owner_id, exc)
        return False

    logger.info("First message from mobile user %s, sending welcome message", event.sender_id)
    now = now or datetime.now(timezone.utc)

    try:
        await store.add_message(ChatMessage(
            owner_id=event.owner_id,
            sender_id=SYSTEM_SENDER_ID,
            sender_name=brand,
            text=text,
            is_system_message=True,
            created_at=now,
        ))
    except Exception as exc:
        logger.error("Could not store welcome message for %s: %s", event.owner_id, exc)
        return False

    try:
        owner = await directory.get_recipient(event.owner_id)
        await store.upsert_conversation_summary(ConversationSummary(
            owner_id=event.owner_id,
            owner_display_name=(
                (owner.display_name if owner else None)
                or event.sender_name
                or "Unknown User"
            ),
            owner_email=(owner.email if owner else None) or "",
            last_message_preview=text[:PREVIEW_LIMIT],
            last_message_timestamp=now,
            last_message_sender_name=brand,
            last_access_timestamp=now,
        ))
    except Exception as exc:
        logger.error("Could not update conversation summary for %s: %s", event.owner_id, exc)

    logger.info("Welcome message sent to user %s", event.owner_id)
    return True
