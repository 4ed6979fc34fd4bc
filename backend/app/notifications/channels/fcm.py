"""
fcm.py — Firebase Cloud Messaging push gateway.

Delivery mechanism:
    • firebase-admin ``messaging.send_each`` for batches (≤500 messages)
    • ``messaging.send`` for single-recipient paths
    • Android channel / priority and APNs sound + badge from payload hints

The firebase-admin client is blocking, so calls run in a worker thread.
Provider exceptions are mapped to the gateway's ``messaging/...`` error
codes so delivery code never imports firebase types.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Sequence

import firebase_admin
from firebase_admin import credentials, exceptions as firebase_exceptions, messaging

from backend.app.core.errors import PushGatewayError
from backend.app.notifications.channels.gateway import (
    GATEWAY_BATCH_LIMIT,
    INVALID_REGISTRATION_TOKEN,
    TOKEN_NOT_REGISTERED,
    GatewayBatchResponse,
    GatewayItemResult,
    PushMessage,
)
from backend.app.notifications.models import PushPriority

logger = logging.getLogger(__name__)

FCM_APP_NAME = "notification-fanout"


def fcm_error_code(exc: Optional[BaseException]) -> str:
    """Map a firebase-admin exception onto a gateway error code."""
    if exc is None:
        return "messaging/unknown-error"
    if isinstance(exc, messaging.UnregisteredError):
        return TOKEN_NOT_REGISTERED
    if (
        isinstance(exc, firebase_exceptions.InvalidArgumentError)
        and "registration token" in str(exc).lower()
    ):
        return INVALID_REGISTRATION_TOKEN
    code = getattr(exc, "code", None)
    if code:
        return "messaging/" + str(code).lower().replace("_", "-")
    return "messaging/unknown-error"


def to_fcm_message(message: PushMessage) -> messaging.Message:
    payload = message.payload
    high = payload.priority == PushPriority.HIGH
    return messaging.Message(
        token=message.token,
        notification=messaging.Notification(title=payload.title, body=payload.body),
        data=dict(payload.data),
        android=messaging.AndroidConfig(
            priority="high" if high else "normal",
            notification=messaging.AndroidNotification(
                sound="default",
                channel_id=payload.android_channel_id,
                priority="high" if high else "default",
            ),
        ),
        apns=messaging.APNSConfig(
            payload=messaging.APNSPayload(aps=messaging.Aps(sound="default", badge=1)),
        ),
    )


def make_fcm_app(credentials_path: Optional[str], timeout_seconds: float) -> firebase_admin.App:
    """Initialise (or reuse) the named firebase app."""
    try:
        return firebase_admin.get_app(FCM_APP_NAME)
    except ValueError:
        pass

    if credentials_path:
        cred = credentials.Certificate(credentials_path)
    else:
        cred = credentials.ApplicationDefault()
    return firebase_admin.initialize_app(
        cred,
        options={"httpTimeout": timeout_seconds},
        name=FCM_APP_NAME,
    )


class FcmPushGateway:
    """PushGateway backed by firebase-admin."""

    def __init__(self, app: firebase_admin.App):
        self._app = app

    async def send_each(self, messages: Sequence[PushMessage]) -> GatewayBatchResponse:
        if len(messages) > GATEWAY_BATCH_LIMIT:
            raise ValueError(
                f"FCM accepts at most {GATEWAY_BATCH_LIMIT} messages per call, got {len(messages)}"
            )
        fcm_messages = [to_fcm_message(m) for m in messages]
        try:
            batch = await asyncio.to_thread(messaging.send_each, fcm_messages, app=self._app)
        except firebase_exceptions.FirebaseError as exc:
            raise PushGatewayError(str(exc), code=fcm_error_code(exc)) from exc

        responses = []
        for item in batch.responses:
            if item.success:
                responses.append(GatewayItemResult(success=True, message_id=item.message_id))
            else:
                responses.append(
                    GatewayItemResult(success=False, error_code=fcm_error_code(item.exception))
                )
        return GatewayBatchResponse(responses=responses)

    async def send(self, message: PushMessage) -> str:
        try:
            return await asyncio.to_thread(
                messaging.send, to_fcm_message(message), app=self._app
            )
        except firebase_exceptions.FirebaseError as exc:
            raise PushGatewayError(str(exc), code=fcm_error_code(exc)) from exc
