from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from itertools import count
from typing import Any
from uuid import UUID, uuid4

import pytest

from boostify.core.money import to_money
from boostify.db.models.balance_transactions import BalanceTransaction
from boostify.db.models.coupons import Coupon
from boostify.db.models.orders import Order
from boostify.db.models.payment_transactions import PaymentTransaction
from boostify.db.models.users import User
from boostify.db.repo.balance_transactions_repo import BalanceTransactionsRepo
from boostify.db.repo.chats_repo import ChatsRepo
from boostify.db.repo.coupons_repo import CouponsRepo
from boostify.db.repo.orders_repo import OrdersRepo
from boostify.db.repo.payment_transactions_repo import PaymentTransactionsRepo
from boostify.db.repo.users_repo import UsersRepo
from boostify.services.payments import PaymentProcessorError, ProcessorPaymentIntent, ProcessorRefund

UTC = timezone.utc
NOW_UTC = datetime(2026, 10, 1, 12, 0, tzinfo=UTC)


class _Savepoint:
    def __init__(self, session: "FakeSession") -> None:
        self._session = session

    async def __aenter__(self) -> "_Savepoint":
        self._session.savepoints += 1
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        return False


class FakeSession:
    def __init__(self) -> None:
        self.savepoints = 0

    def begin_nested(self) -> _Savepoint:
        return _Savepoint(self)


@dataclass
class FakeProcessor:
    intents: dict[str, ProcessorPaymentIntent] = field(default_factory=dict)
    refund_error: str | None = None
    refunds: list[dict[str, Any]] = field(default_factory=list)
    created_intents: list[dict[str, Any]] = field(default_factory=list)

    async def create_payment_intent(self, **kwargs: Any) -> ProcessorPaymentIntent:
        self.created_intents.append(kwargs)
        intent = ProcessorPaymentIntent(
            id=f"pi_{len(self.created_intents)}",
            status="requires_payment_method",
            amount=to_money(kwargs["amount"]),
            currency=kwargs["currency"],
            metadata=dict(kwargs["metadata"]),
            client_secret=f"pi_{len(self.created_intents)}_secret",
        )
        self.intents[intent.id] = intent
        return intent

    async def retrieve_payment_intent(self, payment_intent_id: str) -> ProcessorPaymentIntent:
        try:
            return self.intents[payment_intent_id]
        except KeyError:
            raise PaymentProcessorError(f"No such payment_intent: '{payment_intent_id}'") from None

    async def list_payment_intents(self, *, limit: int = 100) -> list[ProcessorPaymentIntent]:
        return list(self.intents.values())[:limit]

    async def create_refund(self, **kwargs: Any) -> ProcessorRefund:
        self.refunds.append(kwargs)
        if self.refund_error is not None:
            raise PaymentProcessorError(self.refund_error)
        return ProcessorRefund(id=f"re_{len(self.refunds)}", status="succeeded")


def succeeded_intent(
    intent_id: str,
    *,
    amount: str,
    metadata: dict[str, str],
    status: str = "succeeded",
) -> ProcessorPaymentIntent:
    return ProcessorPaymentIntent(
        id=intent_id,
        status=status,
        amount=Decimal(amount),
        currency="usd",
        metadata=metadata,
    )


class InMemorySettlementStore:
    """Backs the repository static methods with dicts so services run without Postgres."""

    def __init__(self) -> None:
        self.users: dict[UUID, User] = {}
        self.orders: dict[UUID, Order] = {}
        self.escrows: dict[UUID, PaymentTransaction] = {}
        self.ledger: list[BalanceTransaction] = []
        self.coupons: dict[str, Coupon] = {}
        self.coupon_usages: list[Any] = []
        self.chats: list[Any] = []
        self.messages: list[Any] = []
        self._ledger_ids = count(1)

    def add_user(self, *, role: str = "customer", balance: str = "0", **extra: Any) -> User:
        user = User(
            id=uuid4(),
            email=f"{uuid4().hex[:10]}@example.com",
            role=role,
            balance=to_money(balance),
            cashback=to_money("0"),
            onboarding_complete=extra.pop("onboarding_complete", False),
            charges_enabled=extra.pop("charges_enabled", False),
            payouts_enabled=extra.pop("payouts_enabled", False),
            **extra,
        )
        self.users[user.id] = user
        return user

    def add_order(self, *, user: User, amount: str, balance_used: str = "0", **extra: Any) -> Order:
        order = Order(
            id=uuid4(),
            user_id=user.id,
            booster_id=None,
            payment_intent_id=extra.pop("payment_intent_id", f"pi_{uuid4().hex[:12]}"),
            payment_method=extra.pop("payment_method", "card"),
            payment_status="captured",
            balance_used=to_money(balance_used),
            game="clash-royale",
            amount=to_money(amount),
            currency="usd",
            status=extra.pop("status", "pending"),
            discount_amount=to_money("0"),
            addons={},
            created_at=NOW_UTC - timedelta(hours=1),
            **extra,
        )
        self.orders[order.id] = order
        return order

    def add_coupon(self, code: str, **extra: Any) -> Coupon:
        coupon = Coupon(
            id=len(self.coupons) + 1,
            code=code,
            discount_type=extra.pop("discount_type", "percentage"),
            discount_value=Decimal(extra.pop("discount_value", "10")),
            valid_from=NOW_UTC - timedelta(days=1),
            valid_until=NOW_UTC + timedelta(days=30),
            usage_count=extra.pop("usage_count", 0),
            is_active=True,
            **extra,
        )
        self.coupons[code] = coupon
        return coupon

    def ledger_for(self, user_id: UUID) -> list[BalanceTransaction]:
        return [entry for entry in self.ledger if entry.user_id == user_id]

    def install(self, monkeypatch: pytest.MonkeyPatch) -> None:
        store = self

        async def get_user(session, user_id):  # noqa: ARG001
            return store.users.get(user_id)

        async def get_user_by_email(session, email):  # noqa: ARG001
            return next((user for user in store.users.values() if user.email == email.lower()), None)

        monkeypatch.setattr(UsersRepo, "get_by_id", get_user)
        monkeypatch.setattr(UsersRepo, "get_by_id_for_update", get_user)
        monkeypatch.setattr(UsersRepo, "get_by_email", get_user_by_email)

        async def get_order(session, order_id):  # noqa: ARG001
            return store.orders.get(order_id)

        async def get_order_by_intent(session, payment_intent_id):  # noqa: ARG001
            return next(
                (order for order in store.orders.values() if order.payment_intent_id == payment_intent_id),
                None,
            )

        async def create_order(session, *, order, created_at):  # noqa: ARG001
            if order.id is None:
                order.id = uuid4()
            order.created_at = created_at
            store.orders[order.id] = order
            return order

        async def claim_pending(session, *, order_id, booster_id, claimed_at):  # noqa: ARG001
            order = store.orders.get(order_id)
            if order is None or order.status != "pending" or order.booster_id is not None:
                return None
            order.booster_id = booster_id
            order.claimed_at = claimed_at
            order.status = "processing"
            order.updated_at = claimed_at
            return order

        monkeypatch.setattr(OrdersRepo, "get_by_id", get_order)
        monkeypatch.setattr(OrdersRepo, "get_by_id_for_update", get_order)
        monkeypatch.setattr(OrdersRepo, "get_by_payment_intent_id", get_order_by_intent)
        monkeypatch.setattr(OrdersRepo, "create", create_order)
        monkeypatch.setattr(OrdersRepo, "claim_pending", claim_pending)

        async def get_escrow_by_order(session, order_id):  # noqa: ARG001
            return store.escrows.get(order_id)

        async def get_escrow_by_id(session, escrow_id):  # noqa: ARG001
            return next((escrow for escrow in store.escrows.values() if escrow.id == escrow_id), None)

        async def create_escrow(session, *, escrow):  # noqa: ARG001
            escrow.id = escrow.id or uuid4()
            escrow.refund_attempts = escrow.refund_attempts or 0
            store.escrows[escrow.order_id] = escrow
            return escrow

        monkeypatch.setattr(PaymentTransactionsRepo, "get_by_order_id", get_escrow_by_order)
        monkeypatch.setattr(PaymentTransactionsRepo, "get_by_order_id_for_update", get_escrow_by_order)
        monkeypatch.setattr(PaymentTransactionsRepo, "get_by_id_for_update", get_escrow_by_id)
        monkeypatch.setattr(PaymentTransactionsRepo, "create", create_escrow)

        async def create_entry(session, *, entry):  # noqa: ARG001
            entry.id = next(store._ledger_ids)
            store.ledger.append(entry)
            return entry

        async def get_by_reference(session, *, reference_id, reference_type, transaction_type=None):  # noqa: ARG001
            for entry in store.ledger:
                if entry.reference_id != reference_id or entry.reference_type != reference_type:
                    continue
                if transaction_type is None or entry.transaction_type == transaction_type:
                    return entry
            return None

        monkeypatch.setattr(BalanceTransactionsRepo, "create", create_entry)
        monkeypatch.setattr(BalanceTransactionsRepo, "get_by_reference", get_by_reference)

        async def get_active_coupon(session, code):  # noqa: ARG001
            return store.coupons.get(code)

        async def increment_usage(session, *, coupon_id):  # noqa: ARG001
            coupon = next(coupon for coupon in store.coupons.values() if coupon.id == coupon_id)
            if coupon.usage_limit is not None and coupon.usage_count >= coupon.usage_limit:
                return False
            coupon.usage_count += 1
            return True

        async def create_usage(session, *, usage):  # noqa: ARG001
            store.coupon_usages.append(usage)
            return usage

        monkeypatch.setattr(CouponsRepo, "get_active_by_code", get_active_coupon)
        monkeypatch.setattr(CouponsRepo, "increment_usage", increment_usage)
        monkeypatch.setattr(CouponsRepo, "create_usage", create_usage)

        async def latest_active_chat(session, *, customer_id, booster_id):  # noqa: ARG001
            return None

        async def create_chat(session, *, chat):  # noqa: ARG001
            chat.id = uuid4()
            store.chats.append(chat)
            return chat

        async def create_message(session, *, message):  # noqa: ARG001
            store.messages.append(message)
            return message

        monkeypatch.setattr(ChatsRepo, "get_latest_active_between", latest_active_chat)
        monkeypatch.setattr(ChatsRepo, "create_chat", create_chat)
        monkeypatch.setattr(ChatsRepo, "create_message", create_message)
