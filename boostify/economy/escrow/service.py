from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from boostify.core.audit import get_audit_sink
from boostify.core.config import get_settings
from boostify.core.money import ZERO, to_money
from boostify.db.models.orders import Order
from boostify.db.models.payment_transactions import PaymentTransaction
from boostify.db.repo.payment_transactions_repo import PaymentTransactionsRepo
from boostify.economy.escrow.errors import (
    EscrowAlreadyExistsError,
    EscrowNotFoundError,
    EscrowStateError,
)
from boostify.economy.escrow.rules import is_settled, split_amount
from boostify.economy.escrow.types import EscrowSettlement, RefundRetryResult
from boostify.economy.wallet.service import WalletService
from boostify.services.payments import PaymentProcessorError, StripePaymentProcessor

logger = structlog.get_logger(__name__)


def refund_idempotency_key(escrow_id: UUID) -> str:
    return f"refund:{escrow_id}"


class EscrowService:
    @staticmethod
    async def open_for_order(
        session: AsyncSession,
        *,
        order: Order,
        now_utc: datetime,
        fee_rate: Decimal | None = None,
    ) -> PaymentTransaction:
        if order.booster_id is None:
            raise EscrowStateError("Escrow requires an assigned booster", current_status=order.status)

        existing = await PaymentTransactionsRepo.get_by_order_id(session, order.id)
        if existing is not None:
            raise EscrowAlreadyExistsError(f"Payment transaction already exists for order {order.id}")

        split = split_amount(
            order.amount,
            fee_rate=fee_rate if fee_rate is not None else get_settings().platform_fee_rate,
        )
        balance_amount = to_money(order.balance_used or ZERO)
        escrow = await PaymentTransactionsRepo.create(
            session,
            escrow=PaymentTransaction(
                order_id=order.id,
                customer_id=order.user_id,
                booster_id=order.booster_id,
                total_amount=split.total_amount,
                platform_fee=split.platform_fee,
                booster_amount=split.booster_amount,
                processor_amount=split.total_amount - balance_amount,
                balance_amount=balance_amount,
                currency=order.currency,
                payment_status="captured",
                stripe_payment_intent_id=order.payment_intent_id,
                created_at=now_utc,
                updated_at=now_utc,
            ),
        )
        get_audit_sink().record(
            "escrow_opened",
            escrow_id=escrow.id,
            order_id=order.id,
            booster_id=order.booster_id,
            total_amount=split.total_amount,
            platform_fee=split.platform_fee,
            booster_amount=split.booster_amount,
        )
        return escrow

    @staticmethod
    async def _get_for_update(session: AsyncSession, order_id: UUID) -> PaymentTransaction:
        escrow = await PaymentTransactionsRepo.get_by_order_id_for_update(session, order_id)
        if escrow is None:
            logger.error("escrow_missing_for_order", order_id=str(order_id))
            raise EscrowNotFoundError("Payment transaction not found")
        return escrow

    @staticmethod
    async def settle_approve(
        session: AsyncSession,
        *,
        order_id: UUID,
        now_utc: datetime,
    ) -> EscrowSettlement:
        escrow = await EscrowService._get_for_update(session, order_id)
        if is_settled(escrow.payment_status):
            raise EscrowStateError(
                f"Payment has already been {escrow.payment_status}",
                current_status=escrow.payment_status,
            )
        if escrow.payment_status != "captured":
            raise EscrowStateError(
                f"Payment cannot be transferred in current status: {escrow.payment_status}",
                current_status=escrow.payment_status,
            )

        escrow.payment_status = "transferred"
        escrow.transferred_at = now_utc
        escrow.updated_at = now_utc
        get_audit_sink().record(
            "escrow_transferred",
            escrow_id=escrow.id,
            order_id=order_id,
            booster_id=escrow.booster_id,
            booster_amount=escrow.booster_amount,
        )
        return EscrowSettlement(
            escrow_id=escrow.id,
            order_id=order_id,
            payment_status=escrow.payment_status,
            total_amount=escrow.total_amount,
        )

    @staticmethod
    async def _request_processor_refund(
        escrow: PaymentTransaction,
        *,
        processor: StripePaymentProcessor,
        reason: str,
    ) -> None:
        escrow.refund_attempts = (escrow.refund_attempts or 0) + 1
        if not escrow.stripe_payment_intent_id:
            escrow.refund_status = "failed"
            escrow.refund_error = "No payment intent recorded for processor-funded amount"
            return

        try:
            refund = await processor.create_refund(
                payment_intent_id=escrow.stripe_payment_intent_id,
                amount=escrow.processor_amount,
                idempotency_key=refund_idempotency_key(escrow.id),
                metadata={"order_id": str(escrow.order_id), "reason": reason},
            )
        except PaymentProcessorError as exc:
            escrow.refund_status = "failed"
            escrow.refund_error = str(exc)
            return

        escrow.refund_id = refund.id
        escrow.refund_status = "succeeded"
        escrow.refund_error = None

    @staticmethod
    async def settle_reject(
        session: AsyncSession,
        *,
        order_id: UUID,
        reason: str,
        processor: StripePaymentProcessor,
        now_utc: datetime,
    ) -> EscrowSettlement:
        """Refund the customer and flip the escrow to refunded.

        A failed processor refund does not block the local transition; the row is
        left with refund_status='failed' for the reconciliation task.
        """
        escrow = await EscrowService._get_for_update(session, order_id)
        if is_settled(escrow.payment_status):
            raise EscrowStateError(
                f"Payment has already been {escrow.payment_status}",
                current_status=escrow.payment_status,
            )
        if escrow.payment_status != "captured":
            raise EscrowStateError(
                f"Payment cannot be refunded in current status: {escrow.payment_status}",
                current_status=escrow.payment_status,
            )

        if escrow.processor_amount > 0:
            await EscrowService._request_processor_refund(escrow, processor=processor, reason=reason)
            if escrow.refund_status == "failed":
                logger.error(
                    "escrow_refund_failed",
                    escrow_id=str(escrow.id),
                    order_id=str(order_id),
                    payment_intent_id=escrow.stripe_payment_intent_id,
                    amount=str(escrow.processor_amount),
                    error=escrow.refund_error,
                )
        else:
            escrow.refund_status = "not_required"

        refunded_to_balance = None
        if escrow.balance_amount > 0:
            await WalletService.refund_to_balance(
                session,
                user_id=escrow.customer_id,
                amount=escrow.balance_amount,
                order_id=order_id,
                now_utc=now_utc,
            )
            refunded_to_balance = to_money(escrow.balance_amount)

        escrow.payment_status = "refunded"
        escrow.refunded_at = now_utc
        escrow.updated_at = now_utc
        get_audit_sink().record(
            "escrow_refunded",
            escrow_id=escrow.id,
            order_id=order_id,
            refund_id=escrow.refund_id,
            refund_status=escrow.refund_status,
            processor_amount=escrow.processor_amount,
            balance_amount=escrow.balance_amount,
        )
        return EscrowSettlement(
            escrow_id=escrow.id,
            order_id=order_id,
            payment_status=escrow.payment_status,
            total_amount=escrow.total_amount,
            refund_id=escrow.refund_id,
            refund_status=escrow.refund_status,
            refunded_to_balance=refunded_to_balance,
        )

    @staticmethod
    async def retry_failed_refund(
        session: AsyncSession,
        *,
        escrow_id: UUID,
        processor: StripePaymentProcessor,
        max_attempts: int,
        now_utc: datetime,
    ) -> RefundRetryResult:
        escrow = await PaymentTransactionsRepo.get_by_id_for_update(session, escrow_id)
        if escrow is None:
            raise EscrowNotFoundError("Payment transaction not found")

        if escrow.payment_status != "refunded" or escrow.refund_status != "failed":
            return RefundRetryResult(
                escrow_id=escrow_id,
                outcome="skipped",
                refund_attempts=escrow.refund_attempts,
            )
        if escrow.refund_attempts >= max_attempts:
            return RefundRetryResult(
                escrow_id=escrow_id,
                outcome="exhausted",
                refund_attempts=escrow.refund_attempts,
                error=escrow.refund_error,
            )

        await EscrowService._request_processor_refund(
            escrow,
            processor=processor,
            reason="Refund reconciliation retry",
        )
        escrow.updated_at = now_utc

        if escrow.refund_status == "succeeded":
            outcome = "succeeded"
        elif escrow.refund_attempts >= max_attempts:
            outcome = "exhausted"
        else:
            outcome = "failed"

        get_audit_sink().record(
            "escrow_refund_retried",
            escrow_id=escrow.id,
            order_id=escrow.order_id,
            outcome=outcome,
            refund_attempts=escrow.refund_attempts,
            refund_id=escrow.refund_id,
        )
        return RefundRetryResult(
            escrow_id=escrow_id,
            outcome=outcome,
            refund_attempts=escrow.refund_attempts,
            error=escrow.refund_error,
        )
