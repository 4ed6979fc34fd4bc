"""
channels — Push gateway backends.

Each backend implements the ``PushGateway`` protocol from ``gateway``:
    send_each(messages) → GatewayBatchResponse   (≤500 messages)
    send(message)       → message id, raises PushGatewayError

Backends are stateless apart from their provider client. Batching,
failure classification and token cleanup live in ``delivery`` / ``tokens``.
"""

from __future__ import annotations

import logging

from backend.app.core.config import Settings
from backend.app.notifications.channels.gateway import PushGateway

logger = logging.getLogger(__name__)


def build_gateway(config: Settings) -> PushGateway:
    """Pick the gateway backend named by PUSH_PROVIDER."""
    provider = config.PUSH_PROVIDER.lower()
    if provider == "fcm":
        from backend.app.notifications.channels.fcm import FcmPushGateway, make_fcm_app

        app = make_fcm_app(config.FCM_CREDENTIALS_PATH, config.PUSH_BATCH_TIMEOUT_SECONDS)
        logger.info("Push gateway: FCM")
        return FcmPushGateway(app)
    if provider == "simulation":
        from backend.app.notifications.channels.simulated import SimulatedPushGateway

        logger.info("Push gateway: simulation (messages are logged, not sent)")
        return SimulatedPushGateway()
    raise ValueError(f"Unknown PUSH_PROVIDER '{config.PUSH_PROVIDER}'")
