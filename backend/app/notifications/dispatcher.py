"""
dispatcher.py — Event kind → handler dispatch table.

The hosting platform's trigger registration is reduced to one call:

    await dispatcher.dispatch(TriggerEvent(kind=..., params=..., data=...))

Each invocation runs with its own log context so concurrent triggers stay
distinguishable in the logs.
"""

from __future__ import annotations

import logging
import time
from typing import Awaitable, Callable, Dict, List

from backend.app.core.errors import UnknownEventError
from backend.app.core.logging_config import trigger_context
from backend.app.notifications.events import EventKind, TriggerEvent
from backend.app.notifications.handlers import NotificationHandlers

logger = logging.getLogger(__name__)

Handler = Callable[[TriggerEvent], Awaitable[None]]


def resolve_kind(value: str) -> EventKind:
    try:
        return EventKind(value)
    except ValueError:
        raise UnknownEventError(value) from None


class EventDispatcher:
    """Maps every EventKind onto one NotificationHandlers method."""

    def __init__(self, handlers: NotificationHandlers):
        self._table: Dict[EventKind, Handler] = {
            EventKind.CHAT_MESSAGE_CREATED: handlers.on_chat_message_created,
            EventKind.REPORT_CREATED:       handlers.on_report_created,
            EventKind.REPORT_UPDATED:       handlers.on_report_updated,
            EventKind.ANNOUNCEMENT_CREATED: handlers.on_announcement_created,
            EventKind.USER_CREATED:         handlers.on_user_created,
        }

    def kinds(self) -> List[EventKind]:
        return list(self._table)

    def handler_for(self, kind: EventKind) -> Handler:
        handler = self._table.get(kind)
        if handler is None:
            raise UnknownEventError(kind.value)
        return handler

    async def dispatch(self, trigger: TriggerEvent) -> None:
        handler = self.handler_for(trigger.kind)
        with trigger_context(event_kind=trigger.kind.value, event_id=trigger.event_id):
            start = time.perf_counter()
            await handler(trigger)
            duration_ms = (time.perf_counter() - start) * 1000
            logger.info(
                "Handled %s in %.1fms", trigger.kind.value, duration_ms,
                extra={"event_kind": trigger.kind.value, "duration_ms": duration_ms},
            )
