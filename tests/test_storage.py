"""
test_storage.py — Tests for the SQLAlchemy directory / conversation store.

Runs against a throwaway SQLite file through aiosqlite.

Run with:
    pytest tests/test_storage.py -v
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

from backend.app.core.database import build_engine, build_session_factory, close_db, init_db
from backend.app.notifications.models import Channel, ChatMessage, ConversationSummary
from backend.app.notifications.storage import ChatSummaryRow, SqlNotificationStore, UserRow


def _run(tmp_path, scenario):
    """Create a fresh database, seed users, run ``scenario(store, sessions)``."""

    async def _go():
        engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'notifications.db'}")
        try:
            await init_db(engine)
            sessions = build_session_factory(engine)
            async with sessions.begin() as session:
                session.add_all([
                    UserRow(id="resident-1", name="Juan", email="juan@example.com",
                            mobile_token="r1-mobile"),
                    UserRow(id="admin-1", name="Admin", web_token="a1-web"),
                    UserRow(id="hybrid-1", name="Hybrid", mobile_token="h1-mobile",
                            web_token="h1-web"),
                ])
            return await scenario(SqlNotificationStore(sessions), sessions)
        finally:
            await close_db(engine)

    return asyncio.run(_go())


# ═══════════════════════════════════════════════════════════════════════════
# Section 1: Directory
# ═══════════════════════════════════════════════════════════════════════════

class TestDirectory:

    def test_get_recipient(self, tmp_path):
        async def scenario(store, _):
            return await store.get_recipient("resident-1"), await store.get_recipient("nobody")

        found, missing = _run(tmp_path, scenario)
        assert found.display_name == "Juan"
        assert found.mobile_token == "r1-mobile"
        assert found.web_token is None
        assert missing is None

    def test_list_recipients(self, tmp_path):
        async def scenario(store, _):
            return await store.list_recipients()

        recipients = _run(tmp_path, scenario)
        assert [r.recipient_id for r in recipients] == ["admin-1", "hybrid-1", "resident-1"]

    def test_clear_token_touches_one_channel(self, tmp_path):
        async def scenario(store, _):
            await store.clear_token("hybrid-1", Channel.WEB)
            return await store.get_recipient("hybrid-1")

        hybrid = _run(tmp_path, scenario)
        assert hybrid is not None
        assert hybrid.web_token is None
        assert hybrid.mobile_token == "h1-mobile"

    def test_clear_token_unknown_recipient(self, tmp_path):
        async def scenario(store, _):
            await store.clear_token("nobody", Channel.MOBILE)
            return await store.list_recipients()

        assert len(_run(tmp_path, scenario)) == 3


# ═══════════════════════════════════════════════════════════════════════════
# Section 2: Conversations
# ═══════════════════════════════════════════════════════════════════════════

class TestConversations:

    def test_count_by_owner_and_sender(self, tmp_path):
        async def scenario(store, _):
            await store.add_message(ChatMessage(owner_id="resident-1", sender_id="resident-1", text="Hi"))
            await store.add_message(ChatMessage(owner_id="resident-1", sender_id="resident-1", text="Hi?"))
            await store.add_message(ChatMessage(
                owner_id="resident-1", sender_id="system", text="Welcome", is_system_message=True,
            ))
            return (
                await store.count_messages("resident-1", "resident-1"),
                await store.count_messages("resident-1", "system"),
                await store.count_messages("resident-2", "resident-1"),
            )

        assert _run(tmp_path, scenario) == (2, 1, 0)

    def test_summary_upsert_merges(self, tmp_path):
        first = datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc)

        async def scenario(store, sessions):
            await store.upsert_conversation_summary(ConversationSummary(
                owner_id="resident-1",
                owner_display_name="Juan",
                owner_email="juan@example.com",
                last_message_preview="Welcome",
                last_message_timestamp=first,
            ))
            await store.upsert_conversation_summary(ConversationSummary(
                owner_id="resident-1",
                last_message_preview="Second",
            ))
            async with sessions() as session:
                return await session.get(ChatSummaryRow, "resident-1")

        row = _run(tmp_path, scenario)
        assert row.user_name == "Juan"
        assert row.user_email == "juan@example.com"
        assert row.last_message == "Second"
        assert row.last_message_time is not None

    def test_summary_upsert_sets_updated_at(self, tmp_path):
        async def scenario(store, sessions):
            await store.upsert_conversation_summary(ConversationSummary(
                owner_id="resident-1", last_message_preview="Welcome",
            ))
            async with sessions() as session:
                return await session.get(ChatSummaryRow, "resident-1")

        assert _run(tmp_path, scenario).updated_at is not None

    def test_concurrent_summary_upserts_merge(self, tmp_path):
        async def scenario(store, sessions):
            results = await asyncio.gather(
                store.upsert_conversation_summary(ConversationSummary(
                    owner_id="resident-1", owner_display_name="Juan",
                )),
                store.upsert_conversation_summary(ConversationSummary(
                    owner_id="resident-1", last_message_preview="Welcome",
                )),
                return_exceptions=True,
            )
            async with sessions() as session:
                return results, await session.get(ChatSummaryRow, "resident-1")

        results, row = _run(tmp_path, scenario)
        assert results == [None, None]
        assert row.user_name == "Juan"
        assert row.last_message == "Welcome"
