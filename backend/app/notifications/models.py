"""
models.py — Shared data structures for the notification fan-out engine.

Defines:
    • Channel            — delivery surface (mobile app vs. web dashboard)
    • Recipient          — a directory entry with per-channel tokens
    • NotificationKind   — payload ``type`` discriminator
    • NotificationPayload — channel-neutral title/body/data
    • DeliveryTarget     — one (recipient, channel, token) destination
    • DeliveryOutcome    — per-destination result
    • DeliveryReport     — aggregated, immutable result of a fan-out
    • ChatMessage / ConversationSummary — chat documents written by the
      welcome auto-reply

═══════════════════════════════════════════════════════════════════════════
ACTOR CLASSIFICATION
═══════════════════════════════════════════════════════════════════════════

    mobile token   web token    Actor
    ────────────   ─────────    ─────────────────────────────────────
    no             no           web    (administrator, no device yet)
    no             yes          web
    yes            no           mobile
    yes            yes          web

A recipient with no tokens at all is still a web actor, so administrators
who never registered a browser are routed to the web channel instead of
being dropped.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple


# ═══════════════════════════════════════════════════════════════════════════
# Enums
# ═══════════════════════════════════════════════════════════════════════════

class Channel(str, Enum):
    """Delivery surface a recipient is reached on."""
    MOBILE = "mobile"
    WEB    = "web"


class NotificationKind(str, Enum):
    """Value of the ``type`` key in every payload's data map."""
    CHAT_MESSAGE    = "chat_message"
    REPORT_CREATED  = "report_created"
    REPORT_UPDATE   = "report_update"
    ANNOUNCEMENT    = "announcement"
    USER_REGISTERED = "user_registered"


class FailureReason(str, Enum):
    """Why a single destination failed."""
    INVALID_DESTINATION = "invalid-destination"  # token is dead, forget it
    TRANSIENT           = "transient"            # keep the token


class PushPriority(str, Enum):
    HIGH   = "high"
    NORMAL = "normal"


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ═══════════════════════════════════════════════════════════════════════════
# Directory
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class Recipient:
    """
    A directory entry: resident, mobile user or web administrator.

    Attributes
    ----------
    recipient_id : str
        Unique identifier (document id).
    display_name : str
        Name shown in notifications; may be empty.
    mobile_token : str | None
        Push token registered by the mobile app.
    web_token : str | None
        Push token registered by the web dashboard.
    email : str | None
        Used as a name fallback only.
    """
    recipient_id: str
    display_name: str = ""
    mobile_token: Optional[str] = None
    web_token: Optional[str] = None
    email: Optional[str] = None


# ═══════════════════════════════════════════════════════════════════════════
# Payload
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class NotificationPayload:
    """
    Channel-neutral notification, built once per event.

    ``data`` is a flat string→string map read by the receiving clients
    for deep-linking. ``android_channel_id`` and ``priority`` are
    delivery hints the gateway maps to platform options.
    """
    kind: NotificationKind
    title: str
    body: str
    data: Dict[str, str] = field(default_factory=dict)
    android_channel_id: str = "default"
    priority: PushPriority = PushPriority.HIGH


# ═══════════════════════════════════════════════════════════════════════════
# Delivery
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class DeliveryTarget:
    """One destination: the token of ``recipient_id`` on ``channel``."""
    recipient_id: str
    channel: Channel
    token: str


@dataclass(frozen=True)
class DeliveryOutcome:
    """Result of delivering one payload to one target."""
    target: DeliveryTarget
    success: bool
    reason: Optional[FailureReason] = None
    error_code: Optional[str] = None
    message_id: Optional[str] = None

    @property
    def needs_cleanup(self) -> bool:
        return self.reason == FailureReason.INVALID_DESTINATION


@dataclass(frozen=True)
class DeliveryReport:
    """
    Aggregated result of one fan-out.

    Immutable: per-chunk reports are combined with ``merge`` so the batch
    loop never mutates shared counters.
    """
    outcomes: Tuple[DeliveryOutcome, ...] = ()
    batch_count: int = 0

    @property
    def success_count(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def failure_count(self) -> int:
        return sum(1 for o in self.outcomes if not o.success)

    @property
    def invalid_destinations(self) -> Tuple[DeliveryOutcome, ...]:
        return tuple(o for o in self.outcomes if o.needs_cleanup)

    def merge(self, other: "DeliveryReport") -> "DeliveryReport":
        return DeliveryReport(
            outcomes=self.outcomes + other.outcomes,
            batch_count=self.batch_count + other.batch_count,
        )


# ═══════════════════════════════════════════════════════════════════════════
# Chat documents
# ═══════════════════════════════════════════════════════════════════════════

SYSTEM_SENDER_ID = "system"


def _generate_message_id() -> str:
    return uuid.uuid4().hex


@dataclass
class ChatMessage:
    """A stored chat message in the conversation owned by ``owner_id``."""
    owner_id: str
    sender_id: str
    sender_name: str = ""
    text: str = ""
    message_id: str = field(default_factory=_generate_message_id)
    is_system_message: bool = False
    is_read: bool = False
    created_at: datetime = field(default_factory=_now)


@dataclass
class ConversationSummary:
    """
    Per-conversation summary record, written with merge semantics.

    ``None`` fields are left untouched by the store.
    """
    owner_id: str
    owner_display_name: Optional[str] = None
    owner_email: Optional[str] = None
    last_message_preview: Optional[str] = None
    last_message_timestamp: Optional[datetime] = None
    last_message_sender_name: Optional[str] = None
    last_access_timestamp: Optional[datetime] = None

    def changed_fields(self) -> Dict[str, Any]:
        """Fields to merge into the stored record (everything but ``None``)."""
        values = {
            "owner_display_name": self.owner_display_name,
            "owner_email": self.owner_email,
            "last_message_preview": self.last_message_preview,
            "last_message_timestamp": self.last_message_timestamp,
            "last_message_sender_name": self.last_message_sender_name,
            "last_access_timestamp": self.last_access_timestamp,
        }
        return {k: v for k, v in values.items() if v is not None}
