"""
Health check aggregation — deep health probe for the fan-out service.

Checks:
    • Database connectivity (SELECT 1 through the store's engine)
    • Push gateway configuration (provider + credentials)

Returns a structured health report suitable for:
    - Kubernetes liveness/readiness probes
    - Load balancer health checks
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from backend.app.core.config import Settings, settings

logger = logging.getLogger(__name__)


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"  # partial functionality
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    name: str
    status: HealthStatus = HealthStatus.HEALTHY
    latency_ms: float = 0.0
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "name": self.name,
            "status": self.status.value,
            "latency_ms": round(self.latency_ms, 2),
        }
        if self.message:
            d["message"] = self.message
        if self.details:
            d["details"] = self.details
        return d


@dataclass
class HealthReport:
    status: HealthStatus = HealthStatus.HEALTHY
    version: str = settings.APP_VERSION
    environment: str = settings.ENVIRONMENT
    timestamp: str = ""
    uptime_seconds: float = 0.0
    components: List[ComponentHealth] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "version": self.version,
            "environment": self.environment,
            "timestamp": self.timestamp or datetime.now(timezone.utc).isoformat(),
            "uptime_seconds": round(self.uptime_seconds, 1),
            "components": [c.to_dict() for c in self.components],
        }


_start_time = time.monotonic()


async def check_database(engine: Optional[AsyncEngine]) -> ComponentHealth:
    comp = ComponentHealth(name="database")
    start = time.monotonic()
    if engine is None:
        comp.status = HealthStatus.UNHEALTHY
        comp.message = "Engine not initialised"
    else:
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            comp.message = "Connection pool available"
            comp.details = {"url": engine.url.render_as_string(hide_password=True).split("@")[-1]}
        except Exception as e:
            comp.status = HealthStatus.UNHEALTHY
            comp.message = str(e)
    comp.latency_ms = (time.monotonic() - start) * 1000
    return comp


async def check_push_gateway(config: Settings = settings) -> ComponentHealth:
    comp = ComponentHealth(name="push_gateway")
    start = time.monotonic()
    provider = config.PUSH_PROVIDER.lower()
    comp.details = {"provider": provider, "batch_size": config.PUSH_BATCH_SIZE}

    if provider == "simulation":
        comp.status = HealthStatus.DEGRADED if config.is_production else HealthStatus.HEALTHY
        comp.message = "Simulated delivery — nothing is sent"
    elif provider == "fcm":
        path = config.FCM_CREDENTIALS_PATH
        if path and not os.path.exists(path):
            comp.status = HealthStatus.UNHEALTHY
            comp.message = f"FCM credentials not found: {path}"
        else:
            comp.message = "FCM configured"
    else:
        comp.status = HealthStatus.UNHEALTHY
        comp.message = f"Unknown provider '{provider}'"

    comp.latency_ms = (time.monotonic() - start) * 1000
    return comp


async def run_health_check(engine: Optional[AsyncEngine]) -> HealthReport:
    """Run all health checks and aggregate into a report."""
    report = HealthReport(
        timestamp=datetime.now(timezone.utc).isoformat(),
        uptime_seconds=time.monotonic() - _start_time,
    )

    report.components.append(await check_database(engine))
    report.components.append(await check_push_gateway())

    statuses = [c.status for c in report.components]
    if HealthStatus.UNHEALTHY in statuses:
        report.status = HealthStatus.UNHEALTHY
    elif HealthStatus.DEGRADED in statuses:
        report.status = HealthStatus.DEGRADED
    else:
        report.status = HealthStatus.HEALTHY

    return report
