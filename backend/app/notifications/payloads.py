"""
payloads.py — Map domain events onto NotificationPayloads.

One builder per event kind. Builders are pure: they take the typed event
(plus any resolved names) and return the payload, or ``None`` when the
event must not notify anyone (report status unchanged).

═══════════════════════════════════════════════════════════════════════════
REPORT STATUS COPY
═══════════════════════════════════════════════════════════════════════════

    Status (case-insensitive)       Title                      Body ending
    ─────────────────────────────   ────────────────────────   ──────────────────────
    responding, in progress         🚨 Responders Dispatched   is being responded to
    resolved, completed             ✅ Report Resolved         has been resolved
    cancelled, rejected             ❌ Report Cancelled        has been cancelled
    pending                         ⏳ Report Pending          is pending review
    anything else                   📋 Report Status Updated   status: <value>

A " at <barangay or location>" qualifier is appended when known.
"""

from __future__ import annotations

from typing import Dict, Optional, Tuple

from backend.app.notifications.events import (
    AnnouncementCreatedEvent,
    ChatMessageEvent,
    ReportCreatedEvent,
    ReportUpdatedEvent,
    UserCreatedEvent,
)
from backend.app.notifications.models import (
    NotificationKind,
    NotificationPayload,
    PushPriority,
)

DEFAULT_REPORT_TYPE = "emergency"
ANNOUNCEMENT_BODY_LIMIT = 100
ELLIPSIS = "…"

# Android notification channels registered by the mobile app
CHAT_CHANNEL = "chat_messages"
REPORT_CHANNEL = "report_updates"
ANNOUNCEMENT_CHANNEL = "announcements"
HIGH_PRIORITY_ANNOUNCEMENT_CHANNEL = "high_priority_announcements"
USER_CHANNEL = "user_updates"


# ═══════════════════════════════════════════════════════════════════════════
# Chat
# ═══════════════════════════════════════════════════════════════════════════

def chat_body(event: ChatMessageEvent) -> str:
    """Message text, or a media glyph label when there is no text."""
    if event.text:
        return event.text
    if event.image_url:
        return "📷 Sent a photo"
    if event.video_url:
        return "🎥 Sent a video"
    if event.audio_url:
        return "🎵 Sent an audio"
    if event.file_url:
        return f"📎 Sent {event.file_name or 'a file'}"
    return "New message"


def build_chat_payload(event: ChatMessageEvent, *, brand: str) -> NotificationPayload:
    sender_name = event.sender_name or brand
    data = {
        "type": NotificationKind.CHAT_MESSAGE.value,
        "userId": event.owner_id,
        "messageId": event.message_id,
        "senderId": event.sender_id,
        "senderName": sender_name,
    }
    if event.file_name:
        data["fileName"] = event.file_name
    return NotificationPayload(
        kind=NotificationKind.CHAT_MESSAGE,
        title=sender_name,
        body=chat_body(event),
        data=data,
        android_channel_id=CHAT_CHANNEL,
        priority=PushPriority.HIGH,
    )


# ═══════════════════════════════════════════════════════════════════════════
# Reports
# ═══════════════════════════════════════════════════════════════════════════

def build_report_created_payload(event: ReportCreatedEvent) -> NotificationPayload:
    report = event.report
    report_type = report.report_type or DEFAULT_REPORT_TYPE
    body = f"A new {report_type} report has been submitted"
    if report.barangay:
        body += f" in {report.barangay}"
    return NotificationPayload(
        kind=NotificationKind.REPORT_CREATED,
        title="📋 New Report Submitted",
        body=body,
        data={
            "type": NotificationKind.REPORT_CREATED.value,
            "reportId": event.report_id,
            "reportNumber": report.report_number or "",
            "reportType": report_type,
            "barangay": report.barangay or "",
            "location": report.location or "",
            "createdBy": report.creator_id,
        },
        android_channel_id=REPORT_CHANNEL,
        priority=PushPriority.HIGH,
    )


_STATUS_COPY: Dict[str, Tuple[str, str]] = {
    "responding":  ("🚨 Responders Dispatched", "is being responded to"),
    "in progress": ("🚨 Responders Dispatched", "is being responded to"),
    "in-progress": ("🚨 Responders Dispatched", "is being responded to"),
    "resolved":    ("✅ Report Resolved", "has been resolved"),
    "completed":   ("✅ Report Resolved", "has been resolved"),
    "cancelled":   ("❌ Report Cancelled", "has been cancelled"),
    "rejected":    ("❌ Report Cancelled", "has been cancelled"),
    "pending":     ("⏳ Report Pending", "is pending review"),
}


def status_copy(status: Optional[str], report_type: str) -> Tuple[str, str]:
    """Title and body for a report that moved to ``status``."""
    key = (status or "").strip().lower()
    if key in _STATUS_COPY:
        title, ending = _STATUS_COPY[key]
        return title, f"Your {report_type} report {ending}"
    return "📋 Report Status Updated", f"Your {report_type} report status: {status}"


def build_report_status_payload(event: ReportUpdatedEvent) -> Optional[NotificationPayload]:
    """Payload for a status change, ``None`` when the status did not change."""
    if not event.status_changed:
        return None

    report = event.report
    report_type = report.report_type or DEFAULT_REPORT_TYPE
    title, body = status_copy(event.new_status, report_type)
    if report.area:
        body += f" at {report.area}"

    return NotificationPayload(
        kind=NotificationKind.REPORT_UPDATE,
        title=title,
        body=body,
        data={
            "type": NotificationKind.REPORT_UPDATE.value,
            "reportId": event.report_id,
            "reportNumber": report.report_number or "",
            "reportType": report_type,
            "oldStatus": event.old_status or "",
            "newStatus": event.new_status or "",
            "barangay": report.barangay or "",
            "location": report.location or "",
        },
        android_channel_id=REPORT_CHANNEL,
        priority=PushPriority.HIGH,
    )


# ═══════════════════════════════════════════════════════════════════════════
# Announcements
# ═══════════════════════════════════════════════════════════════════════════

def announcement_title(priority: Optional[str]) -> str:
    priority = (priority or "").lower()
    if priority == "high":
        return "🚨 Important Announcement"
    if priority == "medium":
        return "📢 New Announcement"
    return "ℹ️ Announcement"


def truncate_description(description: Optional[str], limit: int = ANNOUNCEMENT_BODY_LIMIT) -> str:
    if not description:
        return "Check the app for details"
    if len(description) > limit:
        return description[: limit - 3] + ELLIPSIS
    return description


def build_announcement_payload(event: AnnouncementCreatedEvent) -> NotificationPayload:
    high = (event.priority or "").lower() == "high"
    return NotificationPayload(
        kind=NotificationKind.ANNOUNCEMENT,
        title=announcement_title(event.priority),
        body=truncate_description(event.description),
        data={
            "type": NotificationKind.ANNOUNCEMENT.value,
            "announcementId": event.announcement_id,
            "announcementType": event.announcement_type or "general",
            "priority": event.priority or "low",
            "date": event.date or "",
        },
        android_channel_id=HIGH_PRIORITY_ANNOUNCEMENT_CHANNEL if high else ANNOUNCEMENT_CHANNEL,
        priority=PushPriority.HIGH if high else PushPriority.NORMAL,
    )


# ═══════════════════════════════════════════════════════════════════════════
# Registrations
# ═══════════════════════════════════════════════════════════════════════════

def build_user_registered_payload(event: UserCreatedEvent) -> NotificationPayload:
    user_name = event.name or event.email or "A new user"
    return NotificationPayload(
        kind=NotificationKind.USER_REGISTERED,
        title="👤 New User Registered",
        body=f"{user_name} has registered on the mobile app",
        data={
            "type": NotificationKind.USER_REGISTERED.value,
            "newUserId": event.user_id,
            "userName": user_name,
        },
        android_channel_id=USER_CHANNEL,
        priority=PushPriority.NORMAL,
    )
