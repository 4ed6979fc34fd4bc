"""
Core package — cross-cutting concerns.

Modules:
    config      — environment variables & settings
    logging     — structured JSON logging, trigger log context
    errors      — exception hierarchy & handlers
    middleware  — request timing & correlation IDs
    health      — health check aggregation
    database    — async SQLAlchemy engine & session factory
"""
