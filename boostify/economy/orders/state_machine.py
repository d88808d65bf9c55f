from __future__ import annotations

from boostify.economy.orders.errors import OrderStateError

ORDER_STATUSES = ("pending", "processing", "awaiting_review", "completed", "refunded")
ACTIVE_STATUSES = frozenset({"pending", "processing"})
ACTION_TRANSITIONS: dict[str, tuple[str, str]] = {
    "claim": ("pending", "processing"),
    "complete": ("processing", "awaiting_review"),
    "approve": ("awaiting_review", "completed"),
    "reject": ("awaiting_review", "refunded"),
}
ACTION_PAST_TENSE = {
    "claim": "claimed",
    "complete": "completed",
    "approve": "approved",
    "reject": "rejected",
}


def initial_status(*, booster_assigned: bool) -> str:
    return "processing" if booster_assigned else "pending"


def next_status_for(action: str, current_status: str) -> str:
    """Target status for `action`, or OrderStateError naming the current status."""
    from_status, to_status = ACTION_TRANSITIONS[action]
    if current_status != from_status:
        raise OrderStateError(
            f"Order cannot be {ACTION_PAST_TENSE[action]} in current status: {current_status}",
            current_status=current_status,
        )
    return to_status
