"""
simulated.py — Log-only push gateway for development and testing.

Every message is logged and reported as delivered, so the whole fan-out
path (recipient resolution, batching, report logging) can be exercised
without provider credentials. Selected with PUSH_PROVIDER=simulation.
"""

from __future__ import annotations

import logging
import uuid
from typing import Sequence

from backend.app.notifications.channels.gateway import (
    GatewayBatchResponse,
    GatewayItemResult,
    PushMessage,
)

logger = logging.getLogger(__name__)


def _simulated_id() -> str:
    return f"sim-{uuid.uuid4().hex[:12]}"


class SimulatedPushGateway:
    """PushGateway that never talks to a provider."""

    async def send(self, message: PushMessage) -> str:
        logger.info(
            "[SIMULATED_PUSH] %s → %s...: %s",
            message.payload.kind.value,
            message.token[:12],
            message.payload.title,
        )
        return _simulated_id()

    async def send_each(self, messages: Sequence[PushMessage]) -> GatewayBatchResponse:
        responses = [
            GatewayItemResult(success=True, message_id=await self.send(m))
            for m in messages
        ]
        return GatewayBatchResponse(responses=responses)
