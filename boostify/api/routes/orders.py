from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from boostify.api.deps import CurrentUser, get_current_user, require_booster
from boostify.api.errors import DOMAIN_ERRORS, as_http_exception
from boostify.db.session import SessionLocal
from boostify.economy.orders.checkout import CheckoutService
from boostify.economy.orders.service import OrderService
from boostify.services.alerts import send_ops_alert
from boostify.services.payments import get_payment_processor

from .orders_models import (
    BoosterOrdersResponse,
    ClaimOrderRequest,
    ClaimOrderResponse,
    CreateBalanceOrderRequest,
    CreateOrderRequest,
    CustomerOrdersResponse,
    EscrowSummary,
    OrderActionResponse,
    OrderCreatedResponse,
    OrderResponse,
    OrdersListResponse,
    RejectOrderRequest,
    SettlementResponse,
)

router = APIRouter(tags=["orders"])
logger = structlog.get_logger(__name__)


@router.post("/orders/claim", response_model=ClaimOrderResponse)
async def claim_order(
    payload: ClaimOrderRequest,
    booster: CurrentUser = Depends(require_booster),
) -> ClaimOrderResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            result = await OrderService.claim(
                session,
                order_id=payload.order_id,
                booster_id=booster.id,
                now_utc=now_utc,
            )
    except DOMAIN_ERRORS as exc:
        raise as_http_exception(exc) from exc

    logger.info("order_claimed", order_id=str(result.order.id), booster_id=str(booster.id))
    return ClaimOrderResponse(
        order=OrderResponse.from_order(result.order),
        escrow=EscrowSummary.from_escrow(result.escrow),
    )


@router.post("/orders/{order_id}/complete", response_model=OrderActionResponse)
async def complete_order(
    order_id: UUID,
    booster: CurrentUser = Depends(require_booster),
) -> OrderActionResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            order = await OrderService.complete(
                session,
                order_id=order_id,
                booster_id=booster.id,
                now_utc=now_utc,
            )
    except DOMAIN_ERRORS as exc:
        raise as_http_exception(exc) from exc

    return OrderActionResponse(
        message="Order marked as complete. Waiting for customer review.",
        order=OrderResponse.from_order(order),
    )


@router.post("/orders/{order_id}/approve", response_model=SettlementResponse)
async def approve_order(
    order_id: UUID,
    user: CurrentUser = Depends(get_current_user),
) -> SettlementResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            result = await OrderService.approve(
                session,
                order_id=order_id,
                customer_id=user.id,
                now_utc=now_utc,
            )
    except DOMAIN_ERRORS as exc:
        raise as_http_exception(exc) from exc

    return SettlementResponse.from_result(
        message="Order approved and payment released to booster",
        order=result.order,
        settlement=result.settlement,
    )


@router.post("/orders/{order_id}/reject", response_model=SettlementResponse)
async def reject_order(
    order_id: UUID,
    payload: RejectOrderRequest,
    user: CurrentUser = Depends(get_current_user),
) -> SettlementResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            result = await OrderService.reject(
                session,
                order_id=order_id,
                customer_id=user.id,
                reason=payload.reason,
                processor=get_payment_processor(),
                now_utc=now_utc,
            )
    except DOMAIN_ERRORS as exc:
        raise as_http_exception(exc) from exc

    if result.settlement.refund_status == "failed":
        await send_ops_alert(
            event="escrow_refund_failed",
            payload={
                "order_id": str(order_id),
                "escrow_id": str(result.settlement.escrow_id),
                "total_amount": str(result.settlement.total_amount),
            },
        )

    return SettlementResponse.from_result(
        message="Order rejected and refund issued successfully",
        order=result.order,
        settlement=result.settlement,
    )


@router.post("/orders/create", response_model=OrderCreatedResponse)
async def create_order_from_payment(
    payload: CreateOrderRequest,
    user: CurrentUser = Depends(get_current_user),
) -> JSONResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            result = await CheckoutService.create_from_payment_intent(
                session,
                payment_intent_id=payload.payment_intent_id,
                user_id=user.id,
                processor=get_payment_processor(),
                now_utc=now_utc,
            )
    except DOMAIN_ERRORS as exc:
        raise as_http_exception(exc) from exc

    response = OrderCreatedResponse(
        message="Order created successfully" if result.created else "Order already exists",
        order_id=result.order.id,
        order=OrderResponse.from_order(result.order),
    )
    return JSONResponse(
        status_code=status.HTTP_201_CREATED if result.created else status.HTTP_200_OK,
        content=response.model_dump(mode="json", by_alias=True),
    )


@router.post(
    "/orders/create-balance",
    response_model=OrderCreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_balance_order(
    payload: CreateBalanceOrderRequest,
    user: CurrentUser = Depends(get_current_user),
) -> OrderCreatedResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            result = await CheckoutService.create_balance_order(
                session,
                user_id=user.id,
                details=payload.order_data.to_service_details(estimated_time=payload.estimated_time),
                amount=payload.total_amount,
                coupon_code=payload.coupon_code,
                booster_id=payload.booster_id,
                now_utc=now_utc,
            )
    except DOMAIN_ERRORS as exc:
        raise as_http_exception(exc) from exc

    return OrderCreatedResponse(
        message="Order created successfully",
        order_id=result.order.id,
        order=OrderResponse.from_order(result.order),
    )


@router.get("/orders/available", response_model=OrdersListResponse)
async def list_available_orders(
    booster: CurrentUser = Depends(require_booster),
) -> OrdersListResponse:
    async with SessionLocal() as session:
        orders = await OrderService.list_available(session)
    return OrdersListResponse(orders=[OrderResponse.from_order(order) for order in orders])


@router.get("/orders/booster", response_model=BoosterOrdersResponse)
async def list_booster_orders(
    booster: CurrentUser = Depends(require_booster),
) -> BoosterOrdersResponse:
    async with SessionLocal() as session:
        summary = await OrderService.booster_summary(session, booster_id=booster.id)
    return BoosterOrdersResponse(
        orders=[OrderResponse.from_order(order) for order in summary.orders],
        total_orders=summary.total_orders,
        completed_orders=summary.completed_orders,
        active_orders=summary.active_orders,
        total_earnings=summary.total_earnings,
    )


@router.get("/orders/user", response_model=CustomerOrdersResponse)
async def list_user_orders(
    user: CurrentUser = Depends(get_current_user),
) -> CustomerOrdersResponse:
    async with SessionLocal() as session:
        summary = await OrderService.customer_summary(session, user_id=user.id)
    return CustomerOrdersResponse(
        orders=[OrderResponse.from_order(order) for order in summary.orders],
        total_orders=summary.total_orders,
        total_spent=summary.total_spent,
        active_services=summary.active_services,
    )
