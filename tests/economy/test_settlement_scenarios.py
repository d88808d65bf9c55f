from __future__ import annotations

from decimal import Decimal

import pytest

from boostify.db.repo.orders_repo import OrdersRepo
from boostify.economy.escrow.errors import EscrowAlreadyExistsError, EscrowNotFoundError, EscrowStateError
from boostify.economy.escrow.service import EscrowService
from boostify.economy.orders.errors import OrderAlreadyClaimedError, OrderForbiddenError, OrderStateError
from boostify.economy.orders.service import OrderService
from boostify.services.chat import BOOSTER_ASSIGNED_MESSAGE
from tests.economy.settlement_fakes import NOW_UTC, FakeProcessor, FakeSession, InMemorySettlementStore


@pytest.fixture
def store(monkeypatch) -> InMemorySettlementStore:
    store = InMemorySettlementStore()
    store.install(monkeypatch)
    return store


async def _claimed_order(store: InMemorySettlementStore, *, amount: str = "100", balance_used: str = "0"):
    customer = store.add_user()
    booster = store.add_user(role="booster")
    order = store.add_order(
        user=customer,
        amount=amount,
        balance_used=balance_used,
        payment_method="hybrid" if Decimal(balance_used) > 0 else "card",
    )
    await OrderService.claim(FakeSession(), order_id=order.id, booster_id=booster.id, now_utc=NOW_UTC)
    return customer, booster, order


@pytest.mark.asyncio
async def test_claim_complete_approve_transfers_escrow(store) -> None:
    customer = store.add_user()
    booster = store.add_user(role="booster")
    order = store.add_order(user=customer, amount="100")
    session = FakeSession()

    claim = await OrderService.claim(session, order_id=order.id, booster_id=booster.id, now_utc=NOW_UTC)
    assert claim.order.status == "processing"
    assert claim.order.booster_id == booster.id
    assert claim.escrow.platform_fee == Decimal("50.00")
    assert claim.escrow.booster_amount == Decimal("50.00")
    assert claim.escrow.payment_status == "captured"
    assert store.messages[0].content == BOOSTER_ASSIGNED_MESSAGE

    completed = await OrderService.complete(session, order_id=order.id, booster_id=booster.id, now_utc=NOW_UTC)
    assert completed.status == "awaiting_review"

    result = await OrderService.approve(session, order_id=order.id, customer_id=customer.id, now_utc=NOW_UTC)
    assert result.order.status == "completed"
    assert result.order.customer_approved_at == NOW_UTC
    assert result.settlement.payment_status == "transferred"
    assert store.escrows[order.id].transferred_at == NOW_UTC


@pytest.mark.asyncio
async def test_reject_refunds_full_amount_through_processor(store) -> None:
    customer, booster, order = await _claimed_order(store)
    session = FakeSession()
    processor = FakeProcessor()
    await OrderService.complete(session, order_id=order.id, booster_id=booster.id, now_utc=NOW_UTC)

    result = await OrderService.reject(
        session,
        order_id=order.id,
        customer_id=customer.id,
        reason="wrong account",
        processor=processor,
        now_utc=NOW_UTC,
    )

    escrow = store.escrows[order.id]
    assert result.order.status == "refunded"
    assert result.order.rejection_reason == "wrong account"
    assert escrow.payment_status == "refunded"
    assert escrow.refund_status == "succeeded"
    assert escrow.refund_id == "re_1"
    assert processor.refunds[0]["amount"] == Decimal("100.00")
    assert processor.refunds[0]["payment_intent_id"] == order.payment_intent_id
    assert processor.refunds[0]["idempotency_key"] == f"refund:{escrow.id}"


@pytest.mark.asyncio
async def test_reject_still_flips_state_when_processor_refund_fails(store) -> None:
    customer, booster, order = await _claimed_order(store)
    session = FakeSession()
    await OrderService.complete(session, order_id=order.id, booster_id=booster.id, now_utc=NOW_UTC)

    result = await OrderService.reject(
        session,
        order_id=order.id,
        customer_id=customer.id,
        reason=None,
        processor=FakeProcessor(refund_error="Your card was declined."),
        now_utc=NOW_UTC,
    )

    escrow = store.escrows[order.id]
    assert result.order.status == "refunded"
    assert result.order.rejection_reason == "Customer rejection"
    assert escrow.payment_status == "refunded"
    assert escrow.refund_status == "failed"
    assert escrow.refund_attempts == 1
    assert escrow.refund_error == "Your card was declined."
    assert result.settlement.refund_status == "failed"


@pytest.mark.asyncio
async def test_reject_returns_wallet_portion_to_balance(store) -> None:
    customer, booster, order = await _claimed_order(store, amount="100", balance_used="30")
    session = FakeSession()
    processor = FakeProcessor()
    await OrderService.complete(session, order_id=order.id, booster_id=booster.id, now_utc=NOW_UTC)

    result = await OrderService.reject(
        session,
        order_id=order.id,
        customer_id=customer.id,
        reason="changed my mind",
        processor=processor,
        now_utc=NOW_UTC,
    )

    assert processor.refunds[0]["amount"] == Decimal("70.00")
    assert result.settlement.refunded_to_balance == Decimal("30.00")
    assert customer.balance == Decimal("30.00")
    [refund_entry] = store.ledger_for(customer.id)
    assert refund_entry.transaction_type == "refund"
    assert refund_entry.reference_id == str(order.id)
    assert refund_entry.balance_before + refund_entry.amount == refund_entry.balance_after


@pytest.mark.asyncio
async def test_wallet_only_order_rejection_needs_no_processor_refund(store) -> None:
    customer, booster, order = await _claimed_order(store, amount="45", balance_used="45")
    session = FakeSession()
    processor = FakeProcessor()
    await OrderService.complete(session, order_id=order.id, booster_id=booster.id, now_utc=NOW_UTC)

    result = await OrderService.reject(
        session,
        order_id=order.id,
        customer_id=customer.id,
        reason="wrong account",
        processor=processor,
        now_utc=NOW_UTC,
    )

    assert processor.refunds == []
    assert result.settlement.refund_status == "not_required"
    assert customer.balance == Decimal("45.00")


@pytest.mark.asyncio
async def test_second_claim_is_rejected_as_conflict(store) -> None:
    _, booster, order = await _claimed_order(store)
    rival = store.add_user(role="booster")

    with pytest.raises(OrderAlreadyClaimedError, match="status: processing"):
        await OrderService.claim(FakeSession(), order_id=order.id, booster_id=rival.id, now_utc=NOW_UTC)

    assert store.orders[order.id].booster_id == booster.id


@pytest.mark.asyncio
async def test_claim_of_order_awaiting_review_names_status(store) -> None:
    _, booster, order = await _claimed_order(store)
    rival = store.add_user(role="booster")
    await OrderService.complete(FakeSession(), order_id=order.id, booster_id=booster.id, now_utc=NOW_UTC)

    with pytest.raises(OrderStateError, match="current status: awaiting_review") as exc_info:
        await OrderService.claim(FakeSession(), order_id=order.id, booster_id=rival.id, now_utc=NOW_UTC)

    assert exc_info.value.current_status == "awaiting_review"
    assert store.orders[order.id].booster_id == booster.id


@pytest.mark.asyncio
async def test_holder_reclaiming_own_order_is_a_state_error(store) -> None:
    _, booster, order = await _claimed_order(store)

    with pytest.raises(OrderStateError, match="current status: processing"):
        await OrderService.claim(FakeSession(), order_id=order.id, booster_id=booster.id, now_utc=NOW_UTC)


@pytest.mark.asyncio
async def test_claim_lost_between_read_and_update_is_a_conflict(store, monkeypatch) -> None:
    customer = store.add_user()
    booster = store.add_user(role="booster")
    order = store.add_order(user=customer, amount="100")

    async def lost_race(session, *, order_id, booster_id, claimed_at):  # noqa: ARG001
        return None

    monkeypatch.setattr(OrdersRepo, "claim_pending", lost_race)

    with pytest.raises(OrderAlreadyClaimedError, match="refresh"):
        await OrderService.claim(FakeSession(), order_id=order.id, booster_id=booster.id, now_utc=NOW_UTC)
    assert store.escrows == {}


@pytest.mark.asyncio
async def test_only_assigned_booster_can_complete(store) -> None:
    _, _, order = await _claimed_order(store)
    stranger = store.add_user(role="booster")

    with pytest.raises(OrderForbiddenError):
        await OrderService.complete(FakeSession(), order_id=order.id, booster_id=stranger.id, now_utc=NOW_UTC)
    assert store.orders[order.id].status == "processing"


@pytest.mark.asyncio
async def test_only_owner_can_approve(store) -> None:
    _, booster, order = await _claimed_order(store)
    session = FakeSession()
    await OrderService.complete(session, order_id=order.id, booster_id=booster.id, now_utc=NOW_UTC)

    with pytest.raises(OrderForbiddenError):
        await OrderService.approve(session, order_id=order.id, customer_id=booster.id, now_utc=NOW_UTC)


@pytest.mark.asyncio
async def test_approve_before_completion_leaves_order_untouched(store) -> None:
    customer, _, order = await _claimed_order(store)

    with pytest.raises(OrderStateError, match="current status: processing") as exc_info:
        await OrderService.approve(FakeSession(), order_id=order.id, customer_id=customer.id, now_utc=NOW_UTC)

    assert exc_info.value.current_status == "processing"
    assert store.orders[order.id].status == "processing"
    assert store.escrows[order.id].payment_status == "captured"


@pytest.mark.asyncio
async def test_approve_twice_is_a_state_error(store) -> None:
    customer, booster, order = await _claimed_order(store)
    session = FakeSession()
    await OrderService.complete(session, order_id=order.id, booster_id=booster.id, now_utc=NOW_UTC)
    await OrderService.approve(session, order_id=order.id, customer_id=customer.id, now_utc=NOW_UTC)

    with pytest.raises(OrderStateError, match="current status: completed"):
        await OrderService.approve(session, order_id=order.id, customer_id=customer.id, now_utc=NOW_UTC)


@pytest.mark.asyncio
async def test_escrow_opens_once_per_order(store) -> None:
    _, _, order = await _claimed_order(store)

    with pytest.raises(EscrowAlreadyExistsError):
        await EscrowService.open_for_order(FakeSession(), order=order, now_utc=NOW_UTC)


@pytest.mark.asyncio
async def test_approve_without_escrow_is_an_integrity_fault(store) -> None:
    customer = store.add_user()
    booster = store.add_user(role="booster")
    order = store.add_order(user=customer, amount="100", status="awaiting_review")
    order.booster_id = booster.id

    with pytest.raises(EscrowNotFoundError):
        await OrderService.approve(FakeSession(), order_id=order.id, customer_id=customer.id, now_utc=NOW_UTC)
    assert order.status == "awaiting_review"


@pytest.mark.asyncio
async def test_settled_escrow_cannot_be_settled_again(store) -> None:
    _, _, order = await _claimed_order(store)
    processor = FakeProcessor()
    await EscrowService.settle_reject(
        FakeSession(), order_id=order.id, reason="requested_by_customer", processor=processor, now_utc=NOW_UTC
    )

    with pytest.raises(EscrowStateError, match="already been refunded") as exc_info:
        await EscrowService.settle_approve(FakeSession(), order_id=order.id, now_utc=NOW_UTC)
    with pytest.raises(EscrowStateError, match="already been refunded"):
        await EscrowService.settle_reject(
            FakeSession(), order_id=order.id, reason="requested_by_customer", processor=processor, now_utc=NOW_UTC
        )

    assert exc_info.value.current_status == "refunded"
    assert len(processor.refunds) == 1
