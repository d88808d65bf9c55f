from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Numeric, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from boostify.db.models.base import Base


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending','processing','awaiting_review','completed','refunded')",
            name="ck_orders_status",
        ),
        CheckConstraint(
            "payment_method IN ('card','balance','hybrid')",
            name="ck_orders_payment_method",
        ),
        CheckConstraint("amount >= 0", name="ck_orders_amount_non_negative"),
        CheckConstraint("balance_used >= 0", name="ck_orders_balance_used_non_negative"),
        CheckConstraint("balance_used <= amount", name="ck_orders_balance_used_le_amount"),
        CheckConstraint("discount_amount >= 0", name="ck_orders_discount_non_negative"),
        CheckConstraint(
            "(status = 'pending') = (booster_id IS NULL)",
            name="ck_orders_booster_only_after_pending",
        ),
        CheckConstraint(
            "booster_id IS NULL OR claimed_at IS NOT NULL",
            name="ck_orders_claimed_at_set",
        ),
        CheckConstraint(
            "rejection_reason IS NULL OR status = 'refunded'",
            name="ck_orders_rejection_reason_only_refunded",
        ),
        Index("idx_orders_user_created", "user_id", "created_at"),
        Index("idx_orders_booster_claimed", "booster_id", "claimed_at"),
        Index(
            "idx_orders_available",
            "created_at",
            postgresql_where=text("status = 'pending' AND booster_id IS NULL"),
        ),
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    booster_id: Mapped[UUID | None] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("users.id"),
        nullable=True,
    )
    payment_intent_id: Mapped[str | None] = mapped_column(String(128), unique=True, nullable=True)
    payment_method: Mapped[str] = mapped_column(String(16), nullable=False)
    payment_status: Mapped[str] = mapped_column(
        String(16), nullable=False, server_default=text("'captured'")
    )
    balance_used: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00"), server_default=text("0")
    )
    game: Mapped[str] = mapped_column(String(64), nullable=False)
    service_category: Mapped[str] = mapped_column(String(64), nullable=False, server_default=text("''"))
    game_account: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("''"))
    current_level: Mapped[str] = mapped_column(String(64), nullable=False, server_default=text("''"))
    target_level: Mapped[str] = mapped_column(String(64), nullable=False, server_default=text("''"))
    estimated_time: Mapped[str | None] = mapped_column(String(64), nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, server_default=text("'usd'"))
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    coupon_code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    discount_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00"), server_default=text("0")
    )
    addons: Mapped[dict[str, object]] = mapped_column(
        JSONB,
        nullable=False,
        default=dict,
        server_default=text("'{}'::jsonb"),
    )
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    claimed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    customer_approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    customer_rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
