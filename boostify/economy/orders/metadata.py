from __future__ import annotations

import json
from decimal import Decimal, InvalidOperation
from uuid import UUID

import structlog

from boostify.core.money import ZERO, to_money
from boostify.economy.orders.errors import OrderValidationError
from boostify.economy.orders.types import DEFAULT_GAME, ServiceDetails

logger = structlog.get_logger(__name__)


def encode_service_details(details: ServiceDetails) -> dict[str, str]:
    metadata = {
        "game": details.game,
        "service_category": details.service_category,
        "game_account": details.game_account,
        "current_level": details.current_level,
        "target_level": details.target_level,
    }
    if details.estimated_time:
        metadata["estimated_time"] = details.estimated_time
    if details.addons:
        metadata["addons"] = json.dumps(details.addons, sort_keys=True, separators=(",", ":"))
    return metadata


def decode_service_details(metadata: dict[str, str]) -> ServiceDetails:
    addons: dict[str, object] = {}
    raw_addons = metadata.get("addons")
    if raw_addons:
        try:
            parsed = json.loads(raw_addons)
        except json.JSONDecodeError:
            logger.warning("order_addons_parse_failed")
        else:
            if isinstance(parsed, dict):
                addons = parsed

    return ServiceDetails(
        game=metadata.get("game") or DEFAULT_GAME,
        service_category=metadata.get("service_category", ""),
        game_account=metadata.get("game_account", ""),
        current_level=metadata.get("current_level", ""),
        target_level=metadata.get("target_level", ""),
        estimated_time=metadata.get("estimated_time") or None,
        addons=addons,
    )


def decode_money(metadata: dict[str, str], key: str) -> Decimal:
    raw = metadata.get(key)
    if not raw:
        return ZERO
    try:
        value = to_money(Decimal(raw))
    except InvalidOperation as exc:
        raise OrderValidationError(f"Invalid payment metadata: {key}") from exc
    if value < 0:
        raise OrderValidationError(f"Invalid payment metadata: {key}")
    return value


def decode_uuid(metadata: dict[str, str], key: str) -> UUID | None:
    raw = metadata.get(key)
    if not raw:
        return None
    try:
        return UUID(raw)
    except ValueError as exc:
        raise OrderValidationError(f"Invalid payment metadata: {key}") from exc
