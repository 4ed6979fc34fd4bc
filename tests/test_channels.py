"""
test_channels.py — Tests for the push gateway backends.

Covers:
    • Backend selection from settings
    • Simulated gateway
    • FCM message mapping and error-code translation (firebase-admin
      calls are patched, no credentials needed)

Run with:
    pytest tests/test_channels.py -v
"""

from __future__ import annotations

import asyncio
import warnings
from types import SimpleNamespace

import pytest
from firebase_admin import exceptions as firebase_exceptions, messaging

from backend.app.core.config import Settings
from backend.app.core.errors import PushGatewayError
from backend.app.notifications.channels import build_gateway
from backend.app.notifications.channels import fcm
from backend.app.notifications.channels.gateway import (
    INVALID_REGISTRATION_TOKEN,
    TOKEN_NOT_REGISTERED,
    PushMessage,
)
from backend.app.notifications.channels.simulated import SimulatedPushGateway
from backend.app.notifications.models import NotificationKind, NotificationPayload, PushPriority


def _message(token: str = "tok-1", priority: PushPriority = PushPriority.HIGH) -> PushMessage:
    return PushMessage(token=token, payload=NotificationPayload(
        kind=NotificationKind.REPORT_UPDATE,
        title="✅ Report Resolved",
        body="Your Fire report has been resolved",
        data={"type": "report_update", "reportId": "r-1"},
        android_channel_id="report_updates",
        priority=priority,
    ))


# ═══════════════════════════════════════════════════════════════════════════
# Section 1: Backend selection
# ═══════════════════════════════════════════════════════════════════════════

class TestBuildGateway:

    def test_simulation(self):
        assert isinstance(build_gateway(Settings(PUSH_PROVIDER="simulation")), SimulatedPushGateway)

    def test_case_insensitive(self):
        assert isinstance(build_gateway(Settings(PUSH_PROVIDER="Simulation")), SimulatedPushGateway)

    def test_unknown_provider(self):
        with pytest.raises(ValueError):
            build_gateway(Settings(PUSH_PROVIDER="carrier-pigeon"))


class TestSimulatedGateway:

    def test_send_each_succeeds_for_all(self):
        response = asyncio.run(SimulatedPushGateway().send_each([_message("a"), _message("b")]))
        assert response.success_count == 2
        assert response.failure_count == 0
        assert all(r.message_id.startswith("sim-") for r in response.responses)


# ═══════════════════════════════════════════════════════════════════════════
# Section 2: FCM mapping
# ═══════════════════════════════════════════════════════════════════════════

class TestFcmErrorCode:

    def test_unregistered(self):
        assert fcm.fcm_error_code(messaging.UnregisteredError("gone")) == TOKEN_NOT_REGISTERED

    def test_invalid_token(self):
        exc = firebase_exceptions.InvalidArgumentError("The registration token is not a valid FCM registration token")
        assert fcm.fcm_error_code(exc) == INVALID_REGISTRATION_TOKEN

    def test_other_invalid_argument(self):
        exc = firebase_exceptions.InvalidArgumentError("Message payload too large")
        assert fcm.fcm_error_code(exc) == "messaging/invalid-argument"

    def test_unavailable(self):
        exc = firebase_exceptions.UnavailableError("backend down")
        assert fcm.fcm_error_code(exc) == "messaging/unavailable"

    def test_none(self):
        assert fcm.fcm_error_code(None) == "messaging/unknown-error"


class TestToFcmMessage:

    def test_high_priority(self):
        msg = fcm.to_fcm_message(_message())
        assert msg.token == "tok-1"
        assert msg.notification.title == "✅ Report Resolved"
        assert msg.data == {"type": "report_update", "reportId": "r-1"}
        assert msg.android.priority == "high"
        assert msg.android.notification.channel_id == "report_updates"
        assert msg.apns.payload.aps.badge == 1

    def test_normal_priority(self):
        msg = fcm.to_fcm_message(_message(priority=PushPriority.NORMAL))
        assert msg.android.priority == "normal"
        assert msg.android.notification.priority == "default"

    def test_builds_without_deprecation_warnings(self):
        with warnings.catch_warnings():
            warnings.simplefilter("error", DeprecationWarning)
            msg = fcm.to_fcm_message(_message())
        assert msg.token == "tok-1"


class TestFcmPushGateway:

    def test_send_each_maps_results(self, monkeypatch):
        def fake_send_each(messages, app=None):
            return SimpleNamespace(responses=[
                SimpleNamespace(success=True, message_id="projects/p/messages/1", exception=None),
                SimpleNamespace(success=False, message_id=None,
                                exception=messaging.UnregisteredError("gone")),
            ])

        monkeypatch.setattr(messaging, "send_each", fake_send_each)
        gateway = fcm.FcmPushGateway(app=object())
        response = asyncio.run(gateway.send_each([_message("a"), _message("b")]))
        assert response.success_count == 1
        assert response.responses[1].error_code == TOKEN_NOT_REGISTERED

    def test_send_each_call_failure(self, monkeypatch):
        def fake_send_each(messages, app=None):
            raise firebase_exceptions.UnavailableError("backend down")

        monkeypatch.setattr(messaging, "send_each", fake_send_each)
        gateway = fcm.FcmPushGateway(app=object())
        with pytest.raises(PushGatewayError) as exc_info:
            asyncio.run(gateway.send_each([_message()]))
        assert exc_info.value.code == "messaging/unavailable"

    def test_send_each_rejects_oversized_batch(self):
        gateway = fcm.FcmPushGateway(app=object())
        with pytest.raises(ValueError):
            asyncio.run(gateway.send_each([_message(f"t{i}") for i in range(501)]))

    def test_send_unregistered(self, monkeypatch):
        def fake_send(message, app=None):
            raise messaging.UnregisteredError("gone")

        monkeypatch.setattr(messaging, "send", fake_send)
        gateway = fcm.FcmPushGateway(app=object())
        with pytest.raises(PushGatewayError) as exc_info:
            asyncio.run(gateway.send(_message()))
        assert exc_info.value.code == TOKEN_NOT_REGISTERED
