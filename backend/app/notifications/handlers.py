"""
handlers.py — One end-to-end handler per watched event.

Each handler: validate the event → resolve recipients → build the payload
→ deliver → clear dead tokens. Handlers return nothing and never raise;
the ``trigger_boundary`` decorator catches and logs every failure, since
the trigger platform cannot usefully retry a fan-out.

═══════════════════════════════════════════════════════════════════════════
ROUTING
═══════════════════════════════════════════════════════════════════════════

    Event                  Who is notified                        Path
    ─────────────────────  ─────────────────────────────────────  ─────────
    chat, web sender       conversation owner's mobile token      single
    chat, mobile sender    every web token (+ welcome on first)   fan-out
    report created         every web token (mobile creator only)  fan-out
    report updated         report creator's mobile token          single
    announcement created   every mobile actor                     fan-out
    user created           every web token except the new user    fan-out
                           (mobile registrations only)

═══════════════════════════════════════════════════════════════════════════
CHAT STATE MACHINE
═══════════════════════════════════════════════════════════════════════════

    Created → Validated → Classified → (WelcomeCheck) → PayloadBuilt
            → Delivered → Reconciled

    Validated stops on system messages and self-sent messages.
    WelcomeCheck runs for mobile senders only.
    Reconciled is reached even when delivery fails.
"""

from __future__ import annotations

import functools
import logging
from typing import Awaitable, Callable, List, TypeVar

from backend.app.core.config import Settings, settings as default_settings
from backend.app.core.errors import MissingDataError
from backend.app.notifications.channels.gateway import PushGateway
from backend.app.notifications.classifier import classify, classify_sender, is_mobile_actor
from backend.app.notifications.delivery import deliver, send_single
from backend.app.notifications.directory import (
    ConversationStore,
    RecipientDirectory,
    mobile_target,
    mobile_targets,
    web_targets,
)
from backend.app.notifications.events import (
    AnnouncementCreatedEvent,
    ChatMessageEvent,
    ReportCreatedEvent,
    ReportUpdatedEvent,
    TriggerEvent,
    UserCreatedEvent,
    parse_event,
)
from backend.app.notifications.models import (
    Channel,
    DeliveryOutcome,
    DeliveryReport,
    DeliveryTarget,
    NotificationPayload,
)
from backend.app.notifications.payloads import (
    build_announcement_payload,
    build_chat_payload,
    build_report_created_payload,
    build_report_status_payload,
    build_user_registered_payload,
)
from backend.app.notifications.tokens import reconcile, reconcile_single
from backend.app.notifications.welcome import send_welcome_if_first

logger = logging.getLogger(__name__)

H = TypeVar("H", bound="NotificationHandlers")


def trigger_boundary(
    func: Callable[[H, TriggerEvent], Awaitable[None]],
) -> Callable[[H, TriggerEvent], Awaitable[None]]:
    """Catch and log everything a handler raises."""

    @functools.wraps(func)
    async def wrapper(self: H, trigger: TriggerEvent) -> None:
        try:
            await func(self, trigger)
        except MissingDataError as exc:
            logger.warning("Skipping %s: %s", trigger.kind.value, exc.message)
        except Exception:
            logger.exception("Error handling %s", trigger.kind.value)

    return wrapper


class NotificationHandlers:
    """
    Trigger handlers bound to their collaborators.

    Parameters
    ----------
    directory : RecipientDirectory
    conversations : ConversationStore
    gateway : PushGateway
    config : Settings
        Batch size / timeout / brand / welcome text.
    """

    def __init__(
        self,
        directory: RecipientDirectory,
        conversations: ConversationStore,
        gateway: PushGateway,
        *,
        config: Settings = default_settings,
    ):
        self.directory = directory
        self.conversations = conversations
        self.gateway = gateway
        self.batch_size = config.PUSH_BATCH_SIZE
        self.timeout_seconds = config.PUSH_BATCH_TIMEOUT_SECONDS
        self.brand = config.BRAND_NAME
        self.welcome_text = config.WELCOME_MESSAGE

    # ── Shared delivery paths ──

    async def _fan_out(
        self,
        label: str,
        targets: List[DeliveryTarget],
        payload: NotificationPayload,
    ) -> DeliveryReport:
        if not targets:
            logger.info("No recipients with push tokens for %s notification", label)
            return DeliveryReport()

        logger.info("Sending %s notification to %d recipients", label, len(targets))
        report = await deliver(
            self.gateway, targets, payload,
            batch_size=self.batch_size,
            timeout_seconds=self.timeout_seconds,
        )
        cleared = await reconcile(self.directory, report)
        logger.info(
            "%s notification sent. Success: %d, Failed: %d, Invalid tokens removed: %d",
            label, report.success_count, report.failure_count, cleared,
            extra={
                "recipient_count": len(targets),
                "batch_count": report.batch_count,
                "success_count": report.success_count,
                "failure_count": report.failure_count,
                "invalid_count": cleared,
            },
        )
        return report

    async def _send_one(
        self,
        label: str,
        target: DeliveryTarget,
        payload: NotificationPayload,
    ) -> DeliveryOutcome:
        outcome = await send_single(
            self.gateway, target, payload, timeout_seconds=self.timeout_seconds,
        )
        if outcome.success:
            logger.info(
                "Sent %s notification to %s (%s)",
                label, target.recipient_id, outcome.message_id,
                extra={"channel": target.channel.value},
            )
        else:
            await reconcile_single(self.directory, outcome)
        return outcome

    # ── Handlers ──

    @trigger_boundary
    async def on_chat_message_created(self, trigger: TriggerEvent) -> None:
        event: ChatMessageEvent = parse_event(trigger)

        if event.is_system_message:
            logger.info("System message %s, skipping notification", event.message_id)
            return
        if event.owner_id == event.sender_id:
            logger.info("Message sent by the conversation owner, skipping notification")
            return

        sender = await self.directory.get_recipient(event.sender_id)
        channel = classify_sender(sender, event.sender_id)

        if channel == Channel.WEB:
            await self._notify_owner(event)
            return

        await send_welcome_if_first(
            self.conversations, self.directory, event,
            brand=self.brand, text=self.welcome_text,
        )
        recipients = await self.directory.list_recipients()
        await self._fan_out(
            "chat",
            web_targets(recipients, exclude=[event.sender_id]),
            build_chat_payload(event, brand=self.brand),
        )

    async def _notify_owner(self, event: ChatMessageEvent) -> None:
        """Web sender → the conversation owner's mobile device."""
        owner = await self.directory.get_recipient(event.owner_id)
        if owner is None:
            logger.warning("No directory record for conversation owner %s", event.owner_id)
            return
        target = mobile_target(owner)
        if target is None:
            logger.info("No mobile token for user %s, skipping chat notification", event.owner_id)
            return
        await self._send_one("chat", target, build_chat_payload(event, brand=self.brand))

    @trigger_boundary
    async def on_report_created(self, trigger: TriggerEvent) -> None:
        event: ReportCreatedEvent = parse_event(trigger)
        creator_id = event.report.creator_id

        creator = await self.directory.get_recipient(creator_id)
        if creator is None:
            logger.warning("No directory record for report creator %s", creator_id)
            return
        if classify(creator) != Channel.MOBILE:
            logger.info("Report creator %s is not a mobile user, skipping", creator_id)
            return

        recipients = await self.directory.list_recipients()
        await self._fan_out(
            "report created",
            web_targets(recipients),
            build_report_created_payload(event),
        )

    @trigger_boundary
    async def on_report_updated(self, trigger: TriggerEvent) -> None:
        event: ReportUpdatedEvent = parse_event(trigger)

        payload = build_report_status_payload(event)
        if payload is None:
            logger.info("Status of report %s unchanged, skipping notification", event.report_id)
            return

        creator_id = event.report.creator_id
        creator = await self.directory.get_recipient(creator_id)
        if creator is None:
            logger.warning("No directory record for report creator %s", creator_id)
            return
        target = mobile_target(creator)
        if target is None:
            logger.info("No mobile token for user %s, skipping status notification", creator_id)
            return

        outcome = await self._send_one("report status", target, payload)
        if outcome.success:
            logger.info(
                'Status changed from "%s" to "%s" for report %s',
                event.old_status, event.new_status, event.report_id,
            )

    @trigger_boundary
    async def on_announcement_created(self, trigger: TriggerEvent) -> None:
        event: AnnouncementCreatedEvent = parse_event(trigger)
        recipients = await self.directory.list_recipients()
        await self._fan_out(
            "announcement",
            mobile_targets(recipients),
            build_announcement_payload(event),
        )

    @trigger_boundary
    async def on_user_created(self, trigger: TriggerEvent) -> None:
        event: UserCreatedEvent = parse_event(trigger)

        if not is_mobile_actor(event.mobile_token, event.web_token):
            logger.info("New user %s is not a mobile user, skipping", event.user_id)
            return

        recipients = await self.directory.list_recipients()
        await self._fan_out(
            "new user registration",
            web_targets(recipients, exclude=[event.user_id]),
            build_user_registered_payload(event),
        )
