"""
notifications — Event-triggered push notification fan-out.

Sub-modules:
    channels/    — Push gateway contract and implementations (FCM, simulated)
    models       — Data structures shared across the engine
    events       — Typed trigger events + validation
    directory    — Recipient directory / conversation store contracts
    storage      — SQLAlchemy implementation of the stores
    classifier   — Mobile vs. web channel classification
    payloads     — Event → NotificationPayload builders
    delivery     — Bounded-batch delivery through the gateway
    tokens       — Invalid token cleanup
    welcome      — First-message welcome auto-reply guard
    handlers     — One end-to-end handler per event kind
    dispatcher   — Event kind → handler dispatch table
"""
