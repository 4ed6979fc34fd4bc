"""
storage.py — SQLAlchemy implementation of the directory and chat stores.

Tables:
    users           recipient directory (push tokens live here)
    chat_messages   one row per chat message, system messages included
    chats           one summary row per conversation (keyed by owner id)

Token clears are single UPDATE statements touching one column. The
summary upsert is a single INSERT ... ON CONFLICT DO UPDATE that writes
only the fields it was given.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import Boolean, DateTime, String, Text, func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import Mapped, mapped_column

from backend.app.core.database import Base
from backend.app.core.errors import PersistenceError
from backend.app.notifications.models import (
    Channel,
    ChatMessage,
    ConversationSummary,
    Recipient,
)

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# ORM rows
# ═══════════════════════════════════════════════════════════════════════════

class UserRow(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), default="")
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    mobile_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    web_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def to_recipient(self) -> Recipient:
        return Recipient(
            recipient_id=self.id,
            display_name=self.name or "",
            mobile_token=self.mobile_token,
            web_token=self.web_token,
            email=self.email,
        )


class ChatMessageRow(Base):
    __tablename__ = "chat_messages"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(128), index=True)
    sender_id: Mapped[str] = mapped_column(String(128), index=True)
    sender_name: Mapped[str] = mapped_column(String(255), default="")
    message: Mapped[str] = mapped_column(Text, default="")
    is_system_message: Mapped[bool] = mapped_column(Boolean, default=False)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))


class ChatSummaryRow(Base):
    __tablename__ = "chats"

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    user_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    user_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    last_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_message_time: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    last_message_sender_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    last_access_time: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True,
        server_default=func.now(), onupdate=func.now(),
    )


# Summary dataclass field → row column
_SUMMARY_COLUMNS = {
    "owner_display_name": "user_name",
    "owner_email": "user_email",
    "last_message_preview": "last_message",
    "last_message_timestamp": "last_message_time",
    "last_message_sender_name": "last_message_sender_name",
    "last_access_timestamp": "last_access_time",
}

_TOKEN_COLUMNS = {
    Channel.MOBILE: UserRow.mobile_token,
    Channel.WEB: UserRow.web_token,
}

# Dialects with INSERT ... ON CONFLICT DO UPDATE
_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _upsert_insert(dialect_name: str):
    try:
        return _UPSERT_INSERTS[dialect_name]
    except KeyError:
        raise PersistenceError(
            "upsert_conversation_summary", f"no upsert support for dialect '{dialect_name}'",
        ) from None


# ═══════════════════════════════════════════════════════════════════════════
# Store
# ═══════════════════════════════════════════════════════════════════════════

class SqlNotificationStore:
    """RecipientDirectory + ConversationStore over one session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._sessions = session_factory

    # ── RecipientDirectory ──

    async def get_recipient(self, recipient_id: str) -> Optional[Recipient]:
        async with self._sessions() as session:
            row = await session.get(UserRow, recipient_id)
            return row.to_recipient() if row else None

    async def list_recipients(self) -> List[Recipient]:
        async with self._sessions() as session:
            result = await session.execute(select(UserRow).order_by(UserRow.id))
            return [row.to_recipient() for row in result.scalars()]

    async def clear_token(self, recipient_id: str, channel: Channel) -> None:
        column = _TOKEN_COLUMNS[channel]
        try:
            async with self._sessions.begin() as session:
                await session.execute(
                    update(UserRow)
                    .where(UserRow.id == recipient_id)
                    .values({column.key: None})
                )
        except SQLAlchemyError as exc:
            raise PersistenceError("clear_token", str(exc)) from exc

    # ── ConversationStore ──

    async def count_messages(self, owner_id: str, sender_id: str) -> int:
        async with self._sessions() as session:
            result = await session.execute(
                select(func.count())
                .select_from(ChatMessageRow)
                .where(
                    ChatMessageRow.user_id == owner_id,
                    ChatMessageRow.sender_id == sender_id,
                )
            )
            return int(result.scalar_one())

    async def add_message(self, message: ChatMessage) -> None:
        try:
            async with self._sessions.begin() as session:
                session.add(ChatMessageRow(
                    id=message.message_id,
                    user_id=message.owner_id,
                    sender_id=message.sender_id,
                    sender_name=message.sender_name,
                    message=message.text,
                    is_system_message=message.is_system_message,
                    is_read=message.is_read,
                    created_at=message.created_at,
                ))
        except SQLAlchemyError as exc:
            raise PersistenceError("add_message", str(exc)) from exc

    async def upsert_conversation_summary(self, summary: ConversationSummary) -> None:
        values = {
            _SUMMARY_COLUMNS[name]: value
            for name, value in summary.changed_fields().items()
        }
        values["updated_at"] = func.now()
        try:
            async with self._sessions.begin() as session:
                insert = _upsert_insert(session.get_bind().dialect.name)
                stmt = insert(ChatSummaryRow).values(user_id=summary.owner_id, **values)
                await session.execute(stmt.on_conflict_do_update(
                    index_elements=[ChatSummaryRow.user_id],
                    set_=values,
                ))
        except SQLAlchemyError as exc:
            raise PersistenceError("upsert_conversation_summary", str(exc)) from exc
