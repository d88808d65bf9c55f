from decimal import Decimal
from uuid import uuid4

import pytest

from boostify.economy.orders.errors import OrderValidationError
from boostify.economy.orders.metadata import (
    decode_money,
    decode_service_details,
    decode_uuid,
    encode_service_details,
)
from boostify.economy.orders.types import DEFAULT_GAME, ServiceDetails


def test_service_details_survive_processor_metadata() -> None:
    details = ServiceDetails(
        game="clash-royale",
        service_category="trophy-push",
        game_account="#ABC123",
        current_level="5000",
        target_level="6000",
        estimated_time="2-3 days",
        addons={"priority": True, "stream": False},
    )

    metadata = encode_service_details(details)
    assert all(isinstance(value, str) for value in metadata.values())
    assert decode_service_details(metadata) == details


def test_missing_game_falls_back_to_default() -> None:
    details = decode_service_details({"addons": "not-json"})
    assert details.game == DEFAULT_GAME
    assert details.addons == {}


def test_decode_money() -> None:
    assert decode_money({"balance_used": "12.345"}, "balance_used") == Decimal("12.35")
    assert decode_money({}, "balance_used") == Decimal("0.00")


@pytest.mark.parametrize("raw", ["abc", "-1"])
def test_decode_money_rejects_garbage(raw: str) -> None:
    with pytest.raises(OrderValidationError, match="balance_used"):
        decode_money({"balance_used": raw}, "balance_used")


def test_decode_uuid() -> None:
    booster_id = uuid4()
    assert decode_uuid({"booster_id": str(booster_id)}, "booster_id") == booster_id
    assert decode_uuid({"booster_id": ""}, "booster_id") is None
    with pytest.raises(OrderValidationError):
        decode_uuid({"booster_id": "nope"}, "booster_id")
