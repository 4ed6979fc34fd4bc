"""
delivery.py — Bounded-batch delivery through the push gateway.

═══════════════════════════════════════════════════════════════════════════
BATCHING
═══════════════════════════════════════════════════════════════════════════

    N targets  →  ⌈N / batch_size⌉ gateway calls, batch_size ≤ 500

    1,200 targets:   [0‥499] → call 1   [500‥999] → call 2   [1000‥1199] → call 3

Chunks keep input order and are sent one after another; gateway-side
concurrency stays at one call per invocation and every outcome maps back
to exactly one target.

═══════════════════════════════════════════════════════════════════════════
FAILURE CLASSIFICATION
═══════════════════════════════════════════════════════════════════════════

    Situation                                   Outcome for each member
    ─────────────────────────────────────────   ──────────────────────────
    gateway call raised / timed out             failed, transient
    per-item error in INVALID_DESTINATION_CODES failed, invalid-destination
    any other per-item error                    failed, transient
    per-item result missing                     failed, transient
    per-item success                            success

Nothing is retried here; transient failures keep their token and are only
counted.
"""

from __future__ import annotations

import asyncio
import logging
from functools import reduce
from typing import Iterator, List, Optional, Sequence, TypeVar

from backend.app.core.errors import PushGatewayError
from backend.app.notifications.channels.gateway import (
    GATEWAY_BATCH_LIMIT,
    GatewayBatchResponse,
    GatewayItemResult,
    PushGateway,
    PushMessage,
    is_invalid_destination,
)
from backend.app.notifications.models import (
    DeliveryOutcome,
    DeliveryReport,
    DeliveryTarget,
    FailureReason,
    NotificationPayload,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT_SECONDS = 10.0


def partition(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    """Consecutive chunks of at most ``size`` items, in order."""
    if size < 1:
        raise ValueError(f"batch size must be positive, got {size}")
    for start in range(0, len(items), size):
        yield items[start:start + size]


def effective_batch_size(requested: Optional[int]) -> int:
    if not requested or requested > GATEWAY_BATCH_LIMIT:
        return GATEWAY_BATCH_LIMIT
    return max(1, requested)


def classify_item(target: DeliveryTarget, item: Optional[GatewayItemResult]) -> DeliveryOutcome:
    if item is None:
        return DeliveryOutcome(
            target=target,
            success=False,
            reason=FailureReason.TRANSIENT,
            error_code="missing-response",
        )
    if item.success:
        return DeliveryOutcome(target=target, success=True, message_id=item.message_id)
    reason = (
        FailureReason.INVALID_DESTINATION
        if is_invalid_destination(item.error_code)
        else FailureReason.TRANSIENT
    )
    return DeliveryOutcome(
        target=target,
        success=False,
        reason=reason,
        error_code=item.error_code,
    )


def _chunk_failed(chunk: Sequence[DeliveryTarget], error_code: str) -> DeliveryReport:
    return DeliveryReport(
        outcomes=tuple(
            DeliveryOutcome(
                target=t,
                success=False,
                reason=FailureReason.TRANSIENT,
                error_code=error_code,
            )
            for t in chunk
        ),
        batch_count=1,
    )


def _chunk_report(chunk: Sequence[DeliveryTarget], response: GatewayBatchResponse) -> DeliveryReport:
    items: List[Optional[GatewayItemResult]] = list(response.responses[: len(chunk)])
    items.extend([None] * (len(chunk) - len(items)))
    return DeliveryReport(
        outcomes=tuple(classify_item(t, item) for t, item in zip(chunk, items)),
        batch_count=1,
    )


async def _deliver_chunk(
    gateway: PushGateway,
    chunk: Sequence[DeliveryTarget],
    payload: NotificationPayload,
    timeout_seconds: float,
    index: int,
) -> DeliveryReport:
    messages = [PushMessage(token=t.token, payload=payload) for t in chunk]
    try:
        response = await asyncio.wait_for(gateway.send_each(messages), timeout=timeout_seconds)
    except asyncio.TimeoutError:
        logger.error(
            "Batch %d (%d messages) timed out after %.1fs",
            index, len(chunk), timeout_seconds,
        )
        return _chunk_failed(chunk, "timeout")
    except PushGatewayError as exc:
        logger.error("Batch %d (%d messages) failed: %s", index, len(chunk), exc.message)
        return _chunk_failed(chunk, exc.code or "gateway-error")
    except Exception as exc:
        logger.error("Batch %d (%d messages) failed: %s", index, len(chunk), exc)
        return _chunk_failed(chunk, "gateway-error")

    if len(response.responses) != len(chunk):
        logger.warning(
            "Batch %d: gateway returned %d results for %d messages",
            index, len(response.responses), len(chunk),
        )
    return _chunk_report(chunk, response)


async def deliver(
    gateway: PushGateway,
    targets: Sequence[DeliveryTarget],
    payload: NotificationPayload,
    *,
    batch_size: int = GATEWAY_BATCH_LIMIT,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
) -> DeliveryReport:
    """
    Send ``payload`` to every target in batches.

    Parameters
    ----------
    gateway : PushGateway
    targets : sequence of DeliveryTarget
        Destinations in delivery order.
    payload : NotificationPayload
        Shared by every destination.
    batch_size : int
        Clamped to GATEWAY_BATCH_LIMIT.
    timeout_seconds : float
        Per gateway call; a timeout fails the whole chunk as transient.

    Returns
    -------
    DeliveryReport
        One outcome per target, in input order.
    """
    size = effective_batch_size(batch_size)
    chunk_reports = []
    for index, chunk in enumerate(partition(targets, size), start=1):
        chunk_reports.append(
            await _deliver_chunk(gateway, chunk, payload, timeout_seconds, index)
        )
    return reduce(DeliveryReport.merge, chunk_reports, DeliveryReport())


async def send_single(
    gateway: PushGateway,
    target: DeliveryTarget,
    payload: NotificationPayload,
    *,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
) -> DeliveryOutcome:
    """Send to one target outside the batch path."""
    message = PushMessage(token=target.token, payload=payload)
    try:
        message_id = await asyncio.wait_for(gateway.send(message), timeout=timeout_seconds)
    except asyncio.TimeoutError:
        logger.error("Push to %s timed out after %.1fs", target.recipient_id, timeout_seconds)
        return DeliveryOutcome(
            target=target, success=False,
            reason=FailureReason.TRANSIENT, error_code="timeout",
        )
    except PushGatewayError as exc:
        logger.error("Push to %s failed: %s", target.recipient_id, exc.message)
        return classify_item(target, GatewayItemResult(success=False, error_code=exc.code))
    except Exception as exc:
        logger.error("Push to %s failed: %s", target.recipient_id, exc)
        return DeliveryOutcome(
            target=target, success=False,
            reason=FailureReason.TRANSIENT, error_code="gateway-error",
        )

    return DeliveryOutcome(target=target, success=True, message_id=message_id)
