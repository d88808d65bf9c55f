from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, text
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from boostify.db.models.base import Base


class PaymentTransaction(Base):
    __tablename__ = "payment_transactions"
    __table_args__ = (
        CheckConstraint(
            "payment_status IN ('captured','transferred','refunded')",
            name="ck_payment_transactions_status",
        ),
        CheckConstraint(
            "refund_status IS NULL OR refund_status IN ('succeeded','failed','not_required')",
            name="ck_payment_transactions_refund_status",
        ),
        CheckConstraint("total_amount >= 0", name="ck_payment_transactions_total_non_negative"),
        CheckConstraint(
            "platform_fee + booster_amount = total_amount",
            name="ck_payment_transactions_split_sums_to_total",
        ),
        CheckConstraint(
            "processor_amount + balance_amount = total_amount",
            name="ck_payment_transactions_funding_sums_to_total",
        ),
        CheckConstraint(
            "NOT (transferred_at IS NOT NULL AND refunded_at IS NOT NULL)",
            name="ck_payment_transactions_single_settlement",
        ),
        Index("idx_payment_transactions_booster", "booster_id"),
        Index(
            "idx_payment_transactions_refund_failed",
            "refunded_at",
            postgresql_where=text("refund_status = 'failed'"),
        ),
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    order_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("orders.id"),
        unique=True,
        nullable=False,
    )
    customer_id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    booster_id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    platform_fee: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    booster_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    processor_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    balance_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00"), server_default=text("0")
    )
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    payment_status: Mapped[str] = mapped_column(String(16), nullable=False)
    stripe_payment_intent_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    refund_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    refund_status: Mapped[str | None] = mapped_column(String(16), nullable=True)
    refund_attempts: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )
    refund_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    transferred_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    refunded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
