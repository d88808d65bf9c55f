"""Stripe adapter.

The Stripe SDK is synchronous, so every call runs in a worker thread. Stripe
errors are translated into `PaymentProcessorError` and never leave this module.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from decimal import Decimal
from functools import lru_cache
from typing import Any

import stripe
import structlog

from boostify.core.config import get_settings
from boostify.core.money import from_minor_units, to_minor_units

logger = structlog.get_logger(__name__)

DEPOSIT_INTENT_TYPE = "balance_deposit"


class PaymentProcessorError(Exception):
    pass


class WebhookSignatureError(PaymentProcessorError):
    pass


@dataclass(slots=True, frozen=True)
class ProcessorPaymentIntent:
    id: str
    status: str
    amount: Decimal
    currency: str
    metadata: dict[str, str] = field(default_factory=dict)
    client_secret: str | None = None

    @property
    def is_deposit(self) -> bool:
        return self.metadata.get("type") == DEPOSIT_INTENT_TYPE


@dataclass(slots=True, frozen=True)
class ProcessorRefund:
    id: str
    status: str


@dataclass(slots=True, frozen=True)
class ProcessorEvent:
    id: str
    type: str
    payment_intent: ProcessorPaymentIntent | None = None


def _as_payment_intent(raw: Any) -> ProcessorPaymentIntent:
    metadata = raw.get("metadata") or {}
    return ProcessorPaymentIntent(
        id=str(raw["id"]),
        status=str(raw["status"]),
        amount=from_minor_units(int(raw["amount"])),
        currency=str(raw["currency"]),
        metadata={str(key): str(value) for key, value in dict(metadata).items()},
        client_secret=raw.get("client_secret"),
    )


class StripePaymentProcessor:
    def __init__(self, *, api_key: str, webhook_secret: str = "") -> None:
        self._client = stripe.StripeClient(api_key)
        self._webhook_secret = webhook_secret

    async def _call(self, operation: str, fn: Any, /, **kwargs: Any) -> Any:
        try:
            return await asyncio.to_thread(fn, **kwargs)
        except stripe.StripeError as exc:
            logger.warning(
                "stripe_call_failed",
                operation=operation,
                error_type=type(exc).__name__,
                stripe_code=getattr(exc, "code", None),
            )
            raise PaymentProcessorError(exc.user_message or str(exc)) from exc

    async def create_payment_intent(
        self,
        *,
        amount: Decimal,
        currency: str,
        metadata: dict[str, str],
        idempotency_key: str | None = None,
        application_fee_amount: int | None = None,
        transfer_destination: str | None = None,
    ) -> ProcessorPaymentIntent:
        params: dict[str, Any] = {
            "amount": to_minor_units(amount),
            "currency": currency,
            "automatic_payment_methods": {"enabled": True, "allow_redirects": "always"},
            "metadata": metadata,
        }
        if application_fee_amount is not None and transfer_destination:
            params["application_fee_amount"] = application_fee_amount
            params["transfer_data"] = {"destination": transfer_destination}

        options: dict[str, Any] = {}
        if idempotency_key:
            options["idempotency_key"] = idempotency_key

        raw = await self._call(
            "payment_intents.create",
            self._client.payment_intents.create,
            params=params,
            options=options,
        )
        return _as_payment_intent(raw)

    async def retrieve_payment_intent(self, payment_intent_id: str) -> ProcessorPaymentIntent:
        raw = await self._call(
            "payment_intents.retrieve",
            self._client.payment_intents.retrieve,
            intent=payment_intent_id,
        )
        return _as_payment_intent(raw)

    async def list_payment_intents(self, *, limit: int = 100) -> list[ProcessorPaymentIntent]:
        page = await self._call(
            "payment_intents.list",
            self._client.payment_intents.list,
            params={"limit": limit},
        )
        return [_as_payment_intent(item) for item in page.data]

    async def create_refund(
        self,
        *,
        payment_intent_id: str,
        amount: Decimal,
        idempotency_key: str,
        metadata: dict[str, str],
    ) -> ProcessorRefund:
        raw = await self._call(
            "refunds.create",
            self._client.refunds.create,
            params={
                "payment_intent": payment_intent_id,
                "amount": to_minor_units(amount),
                "reason": "requested_by_customer",
                "metadata": metadata,
            },
            options={"idempotency_key": idempotency_key},
        )
        return ProcessorRefund(id=str(raw["id"]), status=str(raw["status"]))

    def construct_event(self, *, payload: bytes, signature: str) -> ProcessorEvent:
        try:
            event = stripe.Webhook.construct_event(payload, signature, self._webhook_secret)
        except (ValueError, stripe.SignatureVerificationError) as exc:
            raise WebhookSignatureError("Invalid webhook signature") from exc

        event_type = str(event["type"])
        payment_intent = None
        if event_type.startswith("payment_intent."):
            payment_intent = _as_payment_intent(event["data"]["object"])
        return ProcessorEvent(id=str(event["id"]), type=event_type, payment_intent=payment_intent)


@lru_cache(maxsize=1)
def get_payment_processor() -> StripePaymentProcessor:
    settings = get_settings()
    return StripePaymentProcessor(
        api_key=settings.stripe_secret_key,
        webhook_secret=settings.stripe_webhook_secret,
    )
