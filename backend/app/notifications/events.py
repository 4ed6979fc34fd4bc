"""
events.py — Typed trigger events.

The hosting platform hands each trigger a raw document snapshot (and, for
updates, the before/after pair). Snapshots are validated into one pydantic
model per event kind; a missing or empty required field raises
MissingDataError instead of being silently defaulted.

Field aliases are the stored document field names:

    Event                  Required                      Optional
    ─────────────────────  ────────────────────────────  ─────────────────────────────
    chat_message.created   userId, senderId              senderName, message, imageUrl,
                                                         videoUrl, audioUrl, fileUrl,
                                                         fileName, isSystemMessage
    report.created         userId                        type, barangay, location, reportId
    report.updated         before/after, after.userId    status (before/after)
    announcement.created   —                             type, description, priority, date
    user.created           userId (path)                 name, email, fcmToken, webFcmToken
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from backend.app.core.errors import MissingDataError


class EventKind(str, Enum):
    """Watched document path + lifecycle combinations."""
    CHAT_MESSAGE_CREATED = "chat_message.created"
    REPORT_CREATED       = "report.created"
    REPORT_UPDATED       = "report.updated"
    ANNOUNCEMENT_CREATED = "announcement.created"
    USER_CREATED         = "user.created"


class TriggerEvent(BaseModel):
    """Raw trigger firing as delivered by the hosting platform."""
    kind: EventKind
    params: Dict[str, str] = Field(default_factory=dict)
    data: Optional[Dict[str, Any]] = None
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None

    @property
    def event_id(self) -> str:
        return next(iter(self.params.values()), "")


# ═══════════════════════════════════════════════════════════════════════════
# Document models
# ═══════════════════════════════════════════════════════════════════════════

class _Document(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    @field_validator("*", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class ChatMessageEvent(_Document):
    message_id: str = Field(..., alias="messageId", min_length=1)
    owner_id: str = Field(..., alias="userId", min_length=1)
    sender_id: str = Field(..., alias="senderId", min_length=1)
    sender_name: Optional[str] = Field(None, alias="senderName")
    text: Optional[str] = Field(None, alias="message")
    image_url: Optional[str] = Field(None, alias="imageUrl")
    video_url: Optional[str] = Field(None, alias="videoUrl")
    audio_url: Optional[str] = Field(None, alias="audioUrl")
    file_url: Optional[str] = Field(None, alias="fileUrl")
    file_name: Optional[str] = Field(None, alias="fileName")
    is_system_message: bool = Field(False, alias="isSystemMessage")

    @field_validator("is_system_message", mode="before")
    @classmethod
    def _falsy_flag(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return False
        return value


class ReportSnapshot(_Document):
    creator_id: str = Field(..., alias="userId", min_length=1)
    report_type: Optional[str] = Field(None, alias="type")
    barangay: Optional[str] = None
    location: Optional[str] = None
    report_number: Optional[str] = Field(None, alias="reportId")
    status: Optional[str] = None

    @property
    def area(self) -> Optional[str]:
        return self.barangay or self.location


class ReportCreatedEvent(_Document):
    report_id: str = Field(..., alias="reportId", min_length=1)
    report: ReportSnapshot


class ReportUpdatedEvent(_Document):
    report_id: str = Field(..., alias="reportId", min_length=1)
    old_status: Optional[str] = None
    report: ReportSnapshot

    @property
    def new_status(self) -> Optional[str]:
        return self.report.status

    @property
    def status_changed(self) -> bool:
        return self.old_status != self.new_status


class AnnouncementCreatedEvent(_Document):
    announcement_id: str = Field(..., alias="announcementId", min_length=1)
    announcement_type: Optional[str] = Field(None, alias="type")
    description: Optional[str] = None
    priority: Optional[str] = None
    date: Optional[str] = None

    @field_validator("date", mode="before")
    @classmethod
    def _date_to_str(cls, value: Any) -> Any:
        if value is not None and not isinstance(value, str):
            return str(value)
        return value


class UserCreatedEvent(_Document):
    user_id: str = Field(..., alias="userId", min_length=1)
    name: Optional[str] = None
    email: Optional[str] = None
    mobile_token: Optional[str] = Field(None, alias="fcmToken")
    web_token: Optional[str] = Field(None, alias="webFcmToken")


ParsedEvent = Union[
    ChatMessageEvent,
    ReportCreatedEvent,
    ReportUpdatedEvent,
    AnnouncementCreatedEvent,
    UserCreatedEvent,
]


# ═══════════════════════════════════════════════════════════════════════════
# Parsing
# ═══════════════════════════════════════════════════════════════════════════

def _missing_fields(exc: ValidationError) -> List[str]:
    fields = []
    for error in exc.errors():
        loc = ".".join(str(part) for part in error.get("loc", ()))
        if loc and loc not in fields:
            fields.append(loc)
    return fields


def _validate(model: Type[BaseModel], kind: EventKind, raw: Dict[str, Any]) -> Any:
    try:
        return model.model_validate(raw)
    except ValidationError as exc:
        raise MissingDataError(kind.value, missing=_missing_fields(exc)) from exc


def parse_event(trigger: TriggerEvent) -> ParsedEvent:
    """
    Validate a trigger firing into its typed event.

    Raises
    ------
    MissingDataError
        When the snapshot(s) or required fields are absent.
    """
    kind = trigger.kind
    params = trigger.params

    if kind == EventKind.REPORT_UPDATED:
        if not trigger.before or not trigger.after:
            raise MissingDataError(kind.value, missing=["before", "after"])
        return _validate(ReportUpdatedEvent, kind, {
            "reportId": params.get("reportId"),
            "old_status": trigger.before.get("status"),
            "report": trigger.after,
        })

    if not trigger.data:
        raise MissingDataError(kind.value, missing=["data"])
    data = trigger.data

    if kind == EventKind.CHAT_MESSAGE_CREATED:
        return _validate(ChatMessageEvent, kind, {**data, "messageId": params.get("messageId")})
    if kind == EventKind.REPORT_CREATED:
        return _validate(ReportCreatedEvent, kind, {
            "reportId": params.get("reportId"),
            "report": data,
        })
    if kind == EventKind.ANNOUNCEMENT_CREATED:
        return _validate(
            AnnouncementCreatedEvent, kind,
            {**data, "announcementId": params.get("announcementId")},
        )
    if kind == EventKind.USER_CREATED:
        return _validate(UserCreatedEvent, kind, {**data, "userId": params.get("userId")})

    raise MissingDataError(kind.value)
