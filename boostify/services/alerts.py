from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import httpx
import structlog

from boostify.core.config import get_settings

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class AlertRoute:
    severity: str
    escalation_tier: str


DEFAULT_ALERT_ROUTE = AlertRoute(severity="warning", escalation_tier="ops_l3")
EVENT_ALERT_ROUTES = {
    "refund_reconciliation_exhausted": AlertRoute(severity="critical", escalation_tier="ops_l1"),
    "refund_reconciliation_failed": AlertRoute(severity="error", escalation_tier="ops_l2"),
    "escrow_refund_failed": AlertRoute(severity="error", escalation_tier="ops_l2"),
}


def resolve_alert_route(event: str) -> AlertRoute:
    return EVENT_ALERT_ROUTES.get(event, DEFAULT_ALERT_ROUTE)


def build_alert_body(
    *,
    event: str,
    payload: dict[str, object],
    sent_at: datetime,
    app_env: str,
) -> dict[str, Any]:
    route = resolve_alert_route(event)
    return {
        "event": event,
        "payload": payload,
        "sent_at": sent_at.isoformat(),
        "severity": route.severity,
        "escalation_tier": route.escalation_tier,
        "source": f"boostify/{app_env}",
    }


async def send_ops_alert(*, event: str, payload: dict[str, object]) -> bool:
    settings = get_settings()
    url = settings.ops_alert_webhook_url.strip()
    route = resolve_alert_route(event)
    if not url:
        logger.warning(
            "ops_alert_not_configured",
            alert_event=event,
            severity=route.severity,
            payload=payload,
        )
        return False

    body = build_alert_body(
        event=event,
        payload=payload,
        sent_at=datetime.now(timezone.utc),
        app_env=settings.app_env or "dev",
    )
    try:
        async with httpx.AsyncClient(timeout=5.0) as client:
            response = await client.post(url, json=body)
            response.raise_for_status()
    except httpx.HTTPError:
        logger.exception("ops_alert_delivery_failed", alert_event=event)
        return False

    logger.info(
        "ops_alert_delivered",
        alert_event=event,
        severity=route.severity,
        escalation_tier=route.escalation_tier,
    )
    return True
