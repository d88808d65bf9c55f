from __future__ import annotations

from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends, Query

from boostify.api.deps import CurrentUser, get_current_user
from boostify.api.errors import DOMAIN_ERRORS, as_http_exception
from boostify.db.session import SessionLocal
from boostify.economy.orders.checkout import CheckoutService
from boostify.economy.wallet.service import WalletService
from boostify.services.payments import get_payment_processor

from .balance_models import (
    BalanceResponse,
    BalanceTransactionResponse,
    BalanceTransactionsResponse,
    CheckDepositResponse,
    DepositRequest,
    DepositResponse,
    DepositSuccessRequest,
    DepositSuccessResponse,
    DepositSyncErrorResponse,
    ManualUpdateResponse,
    PaginationResponse,
    ProcessedDepositResponse,
    UsePaymentRequest,
    UsePaymentResponse,
)
from .orders_models import OrderResponse

router = APIRouter(tags=["balance"])
logger = structlog.get_logger(__name__)


@router.get("/balance", response_model=BalanceResponse)
async def get_balance(user: CurrentUser = Depends(get_current_user)) -> BalanceResponse:
    try:
        async with SessionLocal() as session:
            wallet = await WalletService.get_balance(session, user_id=user.id)
    except DOMAIN_ERRORS as exc:
        raise as_http_exception(exc) from exc
    return BalanceResponse(balance=wallet.balance, cashback=wallet.cashback)


@router.get("/balance/transactions", response_model=BalanceTransactionsResponse)
async def list_balance_transactions(
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    transaction_type: str | None = Query(default=None, alias="type"),
    user: CurrentUser = Depends(get_current_user),
) -> BalanceTransactionsResponse:
    try:
        async with SessionLocal() as session:
            page = await WalletService.list_transactions(
                session,
                user_id=user.id,
                limit=limit,
                offset=offset,
                transaction_type=transaction_type,
            )
    except DOMAIN_ERRORS as exc:
        raise as_http_exception(exc) from exc

    return BalanceTransactionsResponse(
        transactions=[BalanceTransactionResponse.from_entry(entry) for entry in page.items],
        pagination=PaginationResponse(
            total=page.total,
            limit=page.limit,
            offset=page.offset,
            has_more=page.has_more,
        ),
    )


@router.post("/balance/deposit", response_model=DepositResponse)
async def create_deposit(
    payload: DepositRequest,
    user: CurrentUser = Depends(get_current_user),
) -> DepositResponse:
    try:
        async with SessionLocal() as session:
            result = await WalletService.init_deposit(
                session,
                user_id=user.id,
                amount=payload.amount,
                processor=get_payment_processor(),
            )
    except DOMAIN_ERRORS as exc:
        raise as_http_exception(exc) from exc

    return DepositResponse(
        client_secret=result.client_secret,
        payment_intent_id=result.payment_intent_id,
        amount=result.amount,
        cashback_amount=result.cashback_amount,
    )


@router.post("/balance/deposit-success", response_model=DepositSuccessResponse)
async def confirm_deposit(
    payload: DepositSuccessRequest,
    user: CurrentUser = Depends(get_current_user),
) -> DepositSuccessResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            result = await WalletService.confirm_deposit(
                session,
                payment_intent_id=payload.payment_intent_id,
                processor=get_payment_processor(),
                now_utc=now_utc,
            )
    except DOMAIN_ERRORS as exc:
        raise as_http_exception(exc) from exc

    return DepositSuccessResponse(
        message="Deposit already processed" if result.idempotent_replay else "Deposit processed successfully",
        deposit_amount=result.deposit_amount,
        cashback_amount=result.cashback_amount,
        balance_after=result.balance_after,
    )


@router.get("/balance/check-deposit", response_model=CheckDepositResponse)
async def check_deposit(
    payment_intent_id: str = Query(alias="paymentIntentId", min_length=1, max_length=128),
    user: CurrentUser = Depends(get_current_user),
) -> CheckDepositResponse:
    try:
        intent = await get_payment_processor().retrieve_payment_intent(payment_intent_id)
    except DOMAIN_ERRORS as exc:
        raise as_http_exception(exc) from exc
    return CheckDepositResponse(is_deposit=intent.is_deposit, metadata=intent.metadata)


@router.post("/balance/use-payment", response_model=UsePaymentResponse)
async def use_payment(
    payload: UsePaymentRequest,
    user: CurrentUser = Depends(get_current_user),
) -> UsePaymentResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            result = await CheckoutService.checkout_with_balance(
                session,
                user_id=user.id,
                details=payload.order_data.to_service_details(estimated_time=payload.estimated_time),
                amount=payload.amount,
                currency=payload.currency.lower(),
                coupon_code=payload.coupon_code,
                booster_id=payload.booster_id,
                use_balance=payload.use_balance,
                processor=get_payment_processor(),
                now_utc=now_utc,
            )
    except DOMAIN_ERRORS as exc:
        raise as_http_exception(exc) from exc

    return UsePaymentResponse(
        paid_with_balance=result.paid_with_balance,
        balance_used=result.balance_used,
        stripe_amount=result.processor_amount,
        balance_after=result.balance_after,
        payment_intent_id=result.payment_intent_id,
        client_secret=result.client_secret,
        coupon_applied=result.coupon_applied,
        discount_amount=result.discount_amount,
        final_amount=result.final_amount,
        order_id=result.order.id if result.order is not None else None,
        order=OrderResponse.from_order(result.order) if result.order is not None else None,
    )


@router.post("/balance/manual-update", response_model=ManualUpdateResponse)
async def sync_missed_deposits(user: CurrentUser = Depends(get_current_user)) -> ManualUpdateResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            result = await WalletService.sync_deposits(
                session,
                user_id=user.id,
                processor=get_payment_processor(),
                now_utc=now_utc,
            )
    except DOMAIN_ERRORS as exc:
        raise as_http_exception(exc) from exc

    return ManualUpdateResponse(
        processed_count=len(result.processed),
        processed_deposits=[
            ProcessedDepositResponse(
                payment_intent_id=item.payment_intent_id,
                amount=item.deposit_amount,
                balance_after=item.balance_after,
            )
            for item in result.processed
        ],
        errors=[
            DepositSyncErrorResponse(payment_intent_id=payment_intent_id, error=error)
            for payment_intent_id, error in result.errors
        ],
    )
