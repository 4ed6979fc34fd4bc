"""
tokens.py — Forget device tokens the gateway reported as permanently dead.

Only the token of the channel that was used is cleared: a dead web token
never touches the mobile token and vice versa. The directory record itself
is never deleted. Cleanup is best effort; a failed write is logged and the
handler carries on.
"""

from __future__ import annotations

import logging

from backend.app.notifications.directory import RecipientDirectory
from backend.app.notifications.models import DeliveryOutcome, DeliveryReport

logger = logging.getLogger(__name__)


async def _clear(directory: RecipientDirectory, outcome: DeliveryOutcome) -> bool:
    target = outcome.target
    try:
        await directory.clear_token(target.recipient_id, target.channel)
    except Exception as exc:
        logger.error(
            "Could not clear %s token for %s: %s",
            target.channel.value, target.recipient_id, exc,
        )
        return False
    logger.info(
        "Cleared invalid %s token for %s (%s)",
        target.channel.value, target.recipient_id, outcome.error_code,
    )
    return True


async def reconcile(directory: RecipientDirectory, report: DeliveryReport) -> int:
    """Clear every invalid-destination token in ``report``; returns how many were cleared."""
    cleared = 0
    for outcome in report.invalid_destinations:
        if await _clear(directory, outcome):
            cleared += 1
    return cleared


async def reconcile_single(directory: RecipientDirectory, outcome: DeliveryOutcome) -> bool:
    if not outcome.needs_cleanup:
        return False
    return await _clear(directory, outcome)
