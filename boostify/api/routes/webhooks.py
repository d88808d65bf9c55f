from __future__ import annotations

from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, HTTPException, Request, status

from boostify.api.errors import DOMAIN_ERRORS, as_http_exception
from boostify.db.session import SessionLocal
from boostify.economy.wallet.service import WalletService
from boostify.services.payments import WebhookSignatureError, get_payment_processor

router = APIRouter(tags=["webhooks"])
logger = structlog.get_logger(__name__)

PAYMENT_SUCCEEDED_EVENT = "payment_intent.succeeded"


@router.post("/webhooks/stripe")
async def stripe_webhook(request: Request) -> dict[str, bool]:
    payload = await request.body()
    signature = request.headers.get("Stripe-Signature")
    if not signature:
        logger.warning("stripe_webhook_missing_signature")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing signature")

    processor = get_payment_processor()
    try:
        event = processor.construct_event(payload=payload, signature=signature)
    except WebhookSignatureError as exc:
        logger.warning("stripe_webhook_invalid_signature")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    intent = event.payment_intent
    if event.type != PAYMENT_SUCCEEDED_EVENT or intent is None or not intent.is_deposit:
        logger.info("stripe_webhook_ignored", event_id=event.id, event_type=event.type)
        return {"received": True}

    try:
        async with SessionLocal.begin() as session:
            result = await WalletService.apply_deposit(
                session,
                intent=intent,
                now_utc=datetime.now(timezone.utc),
            )
    except DOMAIN_ERRORS as exc:
        logger.warning(
            "stripe_webhook_deposit_failed",
            event_id=event.id,
            payment_intent_id=intent.id,
            error_type=type(exc).__name__,
        )
        raise as_http_exception(exc) from exc

    logger.info(
        "stripe_webhook_deposit_applied",
        event_id=event.id,
        payment_intent_id=intent.id,
        idempotent_replay=result.idempotent_replay,
    )
    return {"received": True}
