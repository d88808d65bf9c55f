from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from boostify.core.audit import get_audit_sink
from boostify.core.config import get_settings
from boostify.core.money import ZERO, floor_minor_units, to_minor_units, to_money
from boostify.db.models.orders import Order
from boostify.db.models.users import User
from boostify.db.repo.balance_transactions_repo import BalanceTransactionsRepo
from boostify.db.repo.orders_repo import OrdersRepo
from boostify.db.repo.users_repo import UsersRepo
from boostify.economy.coupons.service import CouponService
from boostify.economy.escrow.service import EscrowService
from boostify.economy.orders.errors import (
    OrderForbiddenError,
    OrderValidationError,
)
from boostify.economy.orders.metadata import (
    decode_money,
    decode_service_details,
    decode_uuid,
    encode_service_details,
)
from boostify.economy.orders.state_machine import initial_status
from boostify.economy.orders.types import CheckoutResult, OrderCreateResult, ServiceDetails
from boostify.economy.wallet.errors import WalletUserNotFoundError
from boostify.economy.wallet.rules import plan_balance_usage
from boostify.economy.wallet.service import (
    ORDER_REFERENCE,
    PAYMENT_INTENT_REFERENCE,
    WalletService,
)
from boostify.services.chat import ensure_order_chat
from boostify.services.payments import StripePaymentProcessor

logger = structlog.get_logger(__name__)


def _is_connect_ready(booster: User) -> bool:
    return bool(
        booster.stripe_connect_account_id
        and booster.onboarding_complete
        and booster.charges_enabled
        and booster.payouts_enabled
    )


class CheckoutService:
    @staticmethod
    async def _resolve_booster(session: AsyncSession, booster_id: UUID | None) -> User | None:
        if booster_id is None:
            return None
        booster = await UsersRepo.get_by_id(session, booster_id)
        if booster is None or booster.role != "booster":
            raise OrderValidationError("Selected booster is not available")
        return booster

    @staticmethod
    def _build_order(
        *,
        user_id: UUID,
        details: ServiceDetails,
        amount: Decimal,
        currency: str,
        payment_method: str,
        balance_used: Decimal,
        booster_id: UUID | None,
        payment_intent_id: str | None,
        coupon_code: str | None,
        discount_amount: Decimal,
        now_utc: datetime,
    ) -> Order:
        return Order(
            user_id=user_id,
            booster_id=booster_id,
            payment_intent_id=payment_intent_id,
            payment_method=payment_method,
            payment_status="captured",
            balance_used=to_money(balance_used),
            game=details.game,
            service_category=details.service_category,
            game_account=details.game_account,
            current_level=details.current_level,
            target_level=details.target_level,
            estimated_time=details.estimated_time,
            amount=to_money(amount),
            currency=currency,
            status=initial_status(booster_assigned=booster_id is not None),
            coupon_code=coupon_code,
            discount_amount=to_money(discount_amount),
            addons=dict(details.addons),
            claimed_at=now_utc if booster_id is not None else None,
        )

    @staticmethod
    async def _after_order_created(
        session: AsyncSession,
        *,
        order: Order,
        now_utc: datetime,
        initial_message: str | None = None,
    ) -> None:
        if order.booster_id is not None:
            await EscrowService.open_for_order(session, order=order, now_utc=now_utc)
            await ensure_order_chat(
                session,
                order_id=order.id,
                customer_id=order.user_id,
                booster_id=order.booster_id,
                now_utc=now_utc,
                initial_message=initial_message,
            )

        if order.coupon_code and order.discount_amount > 0:
            await CouponService.record_usage(
                session,
                code=order.coupon_code,
                user_id=order.user_id,
                order_id=order.id,
                discount_amount=order.discount_amount,
                final_amount=order.amount,
                now_utc=now_utc,
            )

        get_audit_sink().record(
            "order_created",
            order_id=order.id,
            user_id=order.user_id,
            booster_id=order.booster_id,
            status=order.status,
            payment_method=order.payment_method,
            amount=order.amount,
            balance_used=order.balance_used,
            payment_intent_id=order.payment_intent_id,
        )

    @staticmethod
    async def create_from_payment_intent(
        session: AsyncSession,
        *,
        payment_intent_id: str,
        user_id: UUID,
        processor: StripePaymentProcessor,
        now_utc: datetime,
    ) -> OrderCreateResult:
        existing = await OrdersRepo.get_by_payment_intent_id(session, payment_intent_id)
        if existing is not None:
            return OrderCreateResult(order=existing, created=False)

        intent = await processor.retrieve_payment_intent(payment_intent_id)
        if intent.status != "succeeded":
            raise OrderValidationError("Payment intent is not succeeded")
        if intent.is_deposit:
            raise OrderValidationError("Payment intent is a balance deposit, not an order payment")

        metadata = intent.metadata
        owner_id = decode_uuid(metadata, "user_id")
        if owner_id is not None and owner_id != user_id:
            raise OrderForbiddenError("Forbidden - This payment does not belong to you")

        booster = await CheckoutService._resolve_booster(session, decode_uuid(metadata, "booster_id"))
        balance_used = decode_money(metadata, "balance_used")
        discount_amount = decode_money(metadata, "discount_amount")
        amount = to_money(intent.amount + balance_used)

        if balance_used > 0:
            # Concurrent confirms of one hybrid intent serialize on the payer's row.
            payer = await UsersRepo.get_by_id_for_update(session, user_id)
            if payer is None:
                raise WalletUserNotFoundError("User not found")
            existing = await OrdersRepo.get_by_payment_intent_id(session, payment_intent_id)
            if existing is not None:
                return OrderCreateResult(order=existing, created=False)

            debit = await BalanceTransactionsRepo.get_by_reference(
                session,
                reference_id=intent.id,
                reference_type=PAYMENT_INTENT_REFERENCE,
                transaction_type="payment",
            )
            if debit is None:
                logger.warning(
                    "order_balance_portion_missing",
                    payment_intent_id=intent.id,
                    balance_used=str(balance_used),
                )
                await WalletService.pay_with_balance(
                    session,
                    user_id=user_id,
                    amount=balance_used,
                    reference_id=intent.id,
                    reference_type=PAYMENT_INTENT_REFERENCE,
                    description="Partial payment for boost order (balance portion)",
                    metadata={"payment_intent_id": intent.id, "total_amount": str(amount)},
                    now_utc=now_utc,
                )

        order = CheckoutService._build_order(
            user_id=user_id,
            details=decode_service_details(metadata),
            amount=amount,
            currency=intent.currency,
            payment_method="hybrid" if balance_used > 0 else "card",
            balance_used=balance_used,
            booster_id=booster.id if booster is not None else None,
            payment_intent_id=intent.id,
            coupon_code=metadata.get("coupon_code") or None,
            discount_amount=discount_amount,
            now_utc=now_utc,
        )
        try:
            async with session.begin_nested():
                await OrdersRepo.create(session, order=order, created_at=now_utc)
        except IntegrityError:
            replay = await OrdersRepo.get_by_payment_intent_id(session, payment_intent_id)
            if replay is None:
                raise
            return OrderCreateResult(order=replay, created=False)

        await CheckoutService._after_order_created(
            session,
            order=order,
            now_utc=now_utc,
            initial_message=metadata.get("initial_message") or None,
        )
        return OrderCreateResult(order=order, created=True)

    @staticmethod
    async def _create_wallet_funded_order(
        session: AsyncSession,
        *,
        user_id: UUID,
        details: ServiceDetails,
        final_amount: Decimal,
        discount_amount: Decimal,
        coupon_code: str | None,
        booster_id: UUID | None,
        now_utc: datetime,
    ) -> Order:
        order = CheckoutService._build_order(
            user_id=user_id,
            details=details,
            amount=final_amount,
            currency=get_settings().default_currency,
            payment_method="balance",
            balance_used=final_amount,
            booster_id=booster_id,
            payment_intent_id=None,
            coupon_code=coupon_code,
            discount_amount=discount_amount,
            now_utc=now_utc,
        )
        await OrdersRepo.create(session, order=order, created_at=now_utc)

        if final_amount > 0:
            await WalletService.pay_with_balance(
                session,
                user_id=user_id,
                amount=final_amount,
                reference_id=str(order.id),
                reference_type=ORDER_REFERENCE,
                description="Payment for boost order",
                metadata={
                    "original_amount": str(final_amount + discount_amount),
                    "discount_amount": str(discount_amount),
                    "coupon_code": coupon_code,
                },
                now_utc=now_utc,
            )

        await CheckoutService._after_order_created(session, order=order, now_utc=now_utc)
        return order

    @staticmethod
    async def create_balance_order(
        session: AsyncSession,
        *,
        user_id: UUID,
        details: ServiceDetails,
        amount: Decimal,
        coupon_code: str | None,
        booster_id: UUID | None,
        now_utc: datetime,
    ) -> OrderCreateResult:
        """Wallet-only checkout: the whole final amount must be covered by the balance."""
        if amount <= 0:
            raise OrderValidationError("Invalid order data or amount")

        user = await UsersRepo.get_by_id_for_update(session, user_id)
        if user is None:
            raise WalletUserNotFoundError("User not found")

        booster = await CheckoutService._resolve_booster(session, booster_id)
        quote = await CouponService.quote_for_checkout(
            session,
            code=coupon_code,
            amount=amount,
            now_utc=now_utc,
        )
        order = await CheckoutService._create_wallet_funded_order(
            session,
            user_id=user.id,
            details=details,
            final_amount=quote.final_amount,
            discount_amount=quote.discount_amount,
            coupon_code=quote.code,
            booster_id=booster.id if booster is not None else None,
            now_utc=now_utc,
        )
        return OrderCreateResult(order=order, created=True)

    @staticmethod
    async def checkout_with_balance(
        session: AsyncSession,
        *,
        user_id: UUID,
        details: ServiceDetails,
        amount: Decimal,
        currency: str,
        coupon_code: str | None,
        booster_id: UUID | None,
        use_balance: bool,
        processor: StripePaymentProcessor,
        now_utc: datetime,
    ) -> CheckoutResult:
        """Blended checkout.

        Spends min(balance, final amount) from the wallet when requested. If that
        covers everything the order is created right away; otherwise a payment
        intent is opened for the remainder and the wallet portion is debited
        against that intent.
        """
        if amount <= 0:
            raise OrderValidationError("Invalid amount")

        user = await UsersRepo.get_by_id_for_update(session, user_id)
        if user is None:
            raise WalletUserNotFoundError("User not found")

        booster = await CheckoutService._resolve_booster(session, booster_id)
        quote = await CouponService.quote_for_checkout(
            session,
            code=coupon_code,
            amount=amount,
            now_utc=now_utc,
        )
        plan = plan_balance_usage(
            balance=to_money(user.balance),
            final_amount=quote.final_amount,
            use_balance=use_balance,
        )

        if plan.fully_covered:
            order = await CheckoutService._create_wallet_funded_order(
                session,
                user_id=user.id,
                details=details,
                final_amount=quote.final_amount,
                discount_amount=quote.discount_amount,
                coupon_code=quote.code,
                booster_id=booster.id if booster is not None else None,
                now_utc=now_utc,
            )
            return CheckoutResult(
                paid_with_balance=True,
                balance_used=plan.balance_to_use,
                processor_amount=ZERO,
                balance_after=to_money(user.balance),
                discount_amount=quote.discount_amount,
                final_amount=quote.final_amount,
                coupon_applied=quote.code is not None,
                order=order,
            )

        metadata = encode_service_details(details)
        metadata.update(
            {
                "use_balance": "true" if use_balance else "false",
                "balance_used": str(plan.balance_to_use),
                "user_id": str(user.id),
                "total_amount": str(quote.final_amount),
            }
        )
        if quote.code is not None:
            metadata["coupon_code"] = quote.code
            metadata["discount_amount"] = str(quote.discount_amount)

        application_fee_amount = None
        transfer_destination = None
        if booster is not None:
            metadata["booster_id"] = str(booster.id)
            if _is_connect_ready(booster):
                application_fee_amount = floor_minor_units(
                    Decimal(to_minor_units(plan.processor_amount)) * get_settings().platform_fee_rate
                )
                transfer_destination = booster.stripe_connect_account_id

        intent = await processor.create_payment_intent(
            amount=plan.processor_amount,
            currency=currency,
            metadata=metadata,
            application_fee_amount=application_fee_amount,
            transfer_destination=transfer_destination,
        )

        if plan.balance_to_use > 0:
            await WalletService.pay_with_balance(
                session,
                user_id=user.id,
                amount=plan.balance_to_use,
                reference_id=intent.id,
                reference_type=PAYMENT_INTENT_REFERENCE,
                description="Partial payment for boost order (balance portion)",
                metadata={
                    "payment_intent_id": intent.id,
                    "stripe_amount": str(plan.processor_amount),
                    "total_amount": str(quote.final_amount),
                },
                now_utc=now_utc,
            )

        logger.info(
            "checkout_payment_intent_created",
            payment_intent_id=intent.id,
            user_id=str(user.id),
            total_amount=str(quote.final_amount),
            balance_used=str(plan.balance_to_use),
            processor_amount=str(plan.processor_amount),
            connect_split=transfer_destination is not None,
        )
        return CheckoutResult(
            paid_with_balance=plan.balance_to_use > 0,
            balance_used=plan.balance_to_use,
            processor_amount=plan.processor_amount,
            balance_after=to_money(user.balance),
            discount_amount=quote.discount_amount,
            final_amount=quote.final_amount,
            coupon_applied=quote.code is not None,
            payment_intent_id=intent.id,
            client_secret=intent.client_secret,
        )
