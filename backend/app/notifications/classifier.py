"""
classifier.py — Decide which channel an actor operates on.

Decision rule, in order:
    1. web token present, or no mobile token at all  → WEB
    2. otherwise                                     → MOBILE

The rule depends only on token presence, never on names or roles.
"""

from __future__ import annotations

import logging
from typing import Optional

from backend.app.notifications.models import Channel, Recipient

logger = logging.getLogger(__name__)


def is_mobile_actor(mobile_token: Optional[str], web_token: Optional[str]) -> bool:
    return bool(mobile_token) and not web_token


def classify(recipient: Recipient) -> Channel:
    if is_mobile_actor(recipient.mobile_token, recipient.web_token):
        return Channel.MOBILE
    return Channel.WEB


def classify_sender(sender: Optional[Recipient], sender_id: str = "") -> Channel:
    """Classify a chat sender; senders with no directory record are web admins."""
    if sender is None:
        logger.info("No directory record for sender %s, assuming web", sender_id)
        return Channel.WEB
    return classify(sender)
