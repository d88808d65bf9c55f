from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from boostify.core.audit import get_audit_sink
from boostify.core.config import get_settings
from boostify.core.money import ZERO, to_money
from boostify.db.models.balance_transactions import BalanceTransaction
from boostify.db.models.users import User
from boostify.db.repo.balance_transactions_repo import BalanceTransactionsRepo
from boostify.db.repo.users_repo import UsersRepo
from boostify.economy.wallet.errors import (
    DepositNotSucceededError,
    InsufficientBalanceError,
    WalletError,
    WalletUserNotFoundError,
    WalletValidationError,
)
from boostify.economy.wallet.rules import compute_cashback, validate_deposit_amount
from boostify.economy.wallet.types import (
    DepositApplyResult,
    DepositInitResult,
    DepositSyncResult,
    TransactionsPage,
    WalletBalance,
)
from boostify.services.payments import (
    DEPOSIT_INTENT_TYPE,
    ProcessorPaymentIntent,
    StripePaymentProcessor,
)

logger = structlog.get_logger(__name__)

PAYMENT_INTENT_REFERENCE = "payment_intent"
ORDER_REFERENCE = "order"
TRANSACTION_TYPES = frozenset({"deposit", "withdrawal", "payment", "cashback", "refund"})


class WalletService:
    @staticmethod
    async def _append_entry(
        session: AsyncSession,
        *,
        user: User,
        transaction_type: str,
        amount: Decimal,
        description: str,
        now_utc: datetime,
        reference_id: str | None = None,
        reference_type: str | None = None,
        cashback_amount: Decimal | None = None,
        metadata: dict[str, object] | None = None,
    ) -> BalanceTransaction:
        """Move the user's balance by `amount` and write the matching ledger row.

        The caller must hold the user row lock for the whole operation.
        """
        balance_before = to_money(user.balance)
        balance_after = balance_before + to_money(amount)
        if balance_after < 0:
            raise InsufficientBalanceError("Insufficient balance")

        entry = await BalanceTransactionsRepo.create(
            session,
            entry=BalanceTransaction(
                user_id=user.id,
                transaction_type=transaction_type,
                amount=to_money(amount),
                balance_before=balance_before,
                balance_after=balance_after,
                cashback_amount=cashback_amount,
                description=description,
                reference_id=reference_id,
                reference_type=reference_type,
                metadata_=metadata or {},
                created_at=now_utc,
            ),
        )
        user.balance = balance_after
        user.updated_at = now_utc

        get_audit_sink().record(
            "wallet_ledger_appended",
            ledger_id=entry.id,
            user_id=user.id,
            transaction_type=transaction_type,
            amount=entry.amount,
            balance_before=balance_before,
            balance_after=balance_after,
            reference_id=reference_id,
            reference_type=reference_type,
        )
        return entry

    @staticmethod
    async def _get_user_for_update(session: AsyncSession, user_id: UUID) -> User:
        user = await UsersRepo.get_by_id_for_update(session, user_id)
        if user is None:
            raise WalletUserNotFoundError("User not found")
        return user

    @staticmethod
    async def get_balance(session: AsyncSession, *, user_id: UUID) -> WalletBalance:
        user = await UsersRepo.get_by_id(session, user_id)
        if user is None:
            raise WalletUserNotFoundError("User not found")
        return WalletBalance(balance=to_money(user.balance), cashback=to_money(user.cashback))

    @staticmethod
    async def list_transactions(
        session: AsyncSession,
        *,
        user_id: UUID,
        limit: int,
        offset: int,
        transaction_type: str | None = None,
    ) -> TransactionsPage:
        if transaction_type is not None and transaction_type not in TRANSACTION_TYPES:
            raise WalletValidationError(f"Unknown transaction type: {transaction_type}")

        items = await BalanceTransactionsRepo.list_for_user(
            session,
            user_id=user_id,
            limit=limit,
            offset=offset,
            transaction_type=transaction_type,
        )
        total = await BalanceTransactionsRepo.count_for_user(
            session,
            user_id=user_id,
            transaction_type=transaction_type,
        )
        return TransactionsPage(items=items, total=total, limit=limit, offset=offset)

    @staticmethod
    async def init_deposit(
        session: AsyncSession,
        *,
        user_id: UUID,
        amount: Decimal,
        processor: StripePaymentProcessor,
    ) -> DepositInitResult:
        settings = get_settings()
        amount = validate_deposit_amount(amount, minimum=settings.min_deposit_amount)

        user = await UsersRepo.get_by_id(session, user_id)
        if user is None:
            raise WalletUserNotFoundError("User not found")

        cashback_amount = compute_cashback(amount, rate=settings.cashback_rate)
        intent = await processor.create_payment_intent(
            amount=amount,
            currency=settings.default_currency,
            metadata={
                "type": DEPOSIT_INTENT_TYPE,
                "user_id": str(user.id),
                "user_email": user.email,
                "deposit_amount": str(amount),
                "cashback_amount": str(cashback_amount),
            },
        )
        logger.info(
            "wallet_deposit_initiated",
            user_id=str(user.id),
            payment_intent_id=intent.id,
            amount=str(amount),
            cashback_amount=str(cashback_amount),
        )
        return DepositInitResult(
            payment_intent_id=intent.id,
            client_secret=intent.client_secret,
            amount=amount,
            cashback_amount=cashback_amount,
        )

    @staticmethod
    async def _resolve_deposit_user_id(session: AsyncSession, intent: ProcessorPaymentIntent) -> UUID:
        raw_user_id = intent.metadata.get("user_id")
        if raw_user_id:
            try:
                return UUID(raw_user_id)
            except ValueError as exc:
                raise WalletValidationError("Invalid payment metadata") from exc

        user_email = intent.metadata.get("user_email")
        if user_email:
            user = await UsersRepo.get_by_email(session, user_email)
            if user is not None:
                return user.id
        raise WalletUserNotFoundError("Invalid payment metadata or user not found")

    @staticmethod
    async def apply_deposit(
        session: AsyncSession,
        *,
        intent: ProcessorPaymentIntent,
        now_utc: datetime,
    ) -> DepositApplyResult:
        """Credit a succeeded deposit intent at most once (deposit row, then cashback row)."""
        if not intent.is_deposit:
            raise WalletValidationError("Payment intent is not a balance deposit")
        if intent.status != "succeeded":
            raise DepositNotSucceededError(f"Payment not succeeded (status: {intent.status})")

        user_id = await WalletService._resolve_deposit_user_id(session, intent)
        deposit_amount = to_money(intent.amount)
        if deposit_amount <= 0:
            raise WalletValidationError("Invalid payment metadata")

        user = await WalletService._get_user_for_update(session, user_id)
        existing = await BalanceTransactionsRepo.get_by_reference(
            session,
            reference_id=intent.id,
            reference_type=PAYMENT_INTENT_REFERENCE,
            transaction_type="deposit",
        )
        if existing is not None:
            logger.info("wallet_deposit_replayed", payment_intent_id=intent.id, user_id=str(user.id))
            return DepositApplyResult(
                payment_intent_id=intent.id,
                user_id=user.id,
                deposit_amount=to_money(existing.amount),
                cashback_amount=to_money(existing.cashback_amount or ZERO),
                balance_after=to_money(user.balance),
                idempotent_replay=True,
            )

        settings = get_settings()
        cashback_amount = compute_cashback(deposit_amount, rate=settings.cashback_rate)
        await WalletService._append_entry(
            session,
            user=user,
            transaction_type="deposit",
            amount=deposit_amount,
            description=f"Balance deposit of ${deposit_amount}",
            reference_id=intent.id,
            reference_type=PAYMENT_INTENT_REFERENCE,
            cashback_amount=cashback_amount,
            metadata={
                "stripe_payment_intent_id": intent.id,
                "cashback_rate": str(settings.cashback_rate),
            },
            now_utc=now_utc,
        )
        if cashback_amount > 0:
            await WalletService._append_entry(
                session,
                user=user,
                transaction_type="cashback",
                amount=cashback_amount,
                description=f"Cashback reward: ${cashback_amount}",
                reference_id=intent.id,
                reference_type=PAYMENT_INTENT_REFERENCE,
                cashback_amount=cashback_amount,
                metadata={
                    "deposit_amount": str(deposit_amount),
                    "cashback_rate": str(settings.cashback_rate),
                },
                now_utc=now_utc,
            )
            user.cashback = to_money(user.cashback) + cashback_amount

        return DepositApplyResult(
            payment_intent_id=intent.id,
            user_id=user.id,
            deposit_amount=deposit_amount,
            cashback_amount=cashback_amount,
            balance_after=to_money(user.balance),
            idempotent_replay=False,
        )

    @staticmethod
    async def confirm_deposit(
        session: AsyncSession,
        *,
        payment_intent_id: str,
        processor: StripePaymentProcessor,
        now_utc: datetime,
    ) -> DepositApplyResult:
        intent = await processor.retrieve_payment_intent(payment_intent_id)
        return await WalletService.apply_deposit(session, intent=intent, now_utc=now_utc)

    @staticmethod
    async def sync_deposits(
        session: AsyncSession,
        *,
        user_id: UUID,
        processor: StripePaymentProcessor,
        now_utc: datetime,
    ) -> DepositSyncResult:
        user = await UsersRepo.get_by_id(session, user_id)
        if user is None:
            raise WalletUserNotFoundError("User not found")

        result = DepositSyncResult()
        intents = await processor.list_payment_intents(limit=100)
        for intent in intents:
            if not intent.is_deposit or intent.status != "succeeded":
                continue
            owner = intent.metadata.get("user_id")
            if owner != str(user.id) and intent.metadata.get("user_email") != user.email:
                continue

            already_applied = await BalanceTransactionsRepo.get_by_reference(
                session,
                reference_id=intent.id,
                reference_type=PAYMENT_INTENT_REFERENCE,
                transaction_type="deposit",
            )
            if already_applied is not None:
                continue

            try:
                async with session.begin_nested():
                    applied = await WalletService.apply_deposit(session, intent=intent, now_utc=now_utc)
            except WalletError as exc:
                logger.warning("wallet_deposit_sync_failed", payment_intent_id=intent.id, error=str(exc))
                result.errors.append((intent.id, str(exc)))
                continue
            result.processed.append(applied)

        logger.info(
            "wallet_deposit_sync_finished",
            user_id=str(user.id),
            processed=len(result.processed),
            errors=len(result.errors),
        )
        return result

    @staticmethod
    async def pay_with_balance(
        session: AsyncSession,
        *,
        user_id: UUID,
        amount: Decimal,
        reference_id: str | None,
        reference_type: str,
        description: str,
        now_utc: datetime,
        metadata: dict[str, object] | None = None,
    ) -> BalanceTransaction:
        amount = to_money(amount)
        if amount <= 0:
            raise WalletValidationError("Invalid amount")

        user = await WalletService._get_user_for_update(session, user_id)
        if to_money(user.balance) < amount:
            raise InsufficientBalanceError(
                f"Insufficient balance: {to_money(user.balance)} available, {amount} required"
            )

        return await WalletService._append_entry(
            session,
            user=user,
            transaction_type="payment",
            amount=-amount,
            description=description,
            reference_id=reference_id,
            reference_type=reference_type,
            metadata=metadata,
            now_utc=now_utc,
        )

    @staticmethod
    async def refund_to_balance(
        session: AsyncSession,
        *,
        user_id: UUID,
        amount: Decimal,
        order_id: UUID,
        now_utc: datetime,
    ) -> BalanceTransaction:
        amount = to_money(amount)
        if amount <= 0:
            raise WalletValidationError("Invalid amount")

        user = await WalletService._get_user_for_update(session, user_id)
        return await WalletService._append_entry(
            session,
            user=user,
            transaction_type="refund",
            amount=amount,
            description="Refund of balance portion for rejected order",
            reference_id=str(order_id),
            reference_type=ORDER_REFERENCE,
            metadata={"order_id": str(order_id)},
            now_utc=now_utc,
        )
