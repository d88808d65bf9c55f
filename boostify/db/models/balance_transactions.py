from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, Index, Numeric, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from boostify.db.models.base import Base


class BalanceTransaction(Base):
    __tablename__ = "balance_transactions"
    __table_args__ = (
        CheckConstraint(
            "transaction_type IN ('deposit','withdrawal','payment','cashback','refund')",
            name="ck_balance_transactions_type",
        ),
        CheckConstraint(
            "balance_after = balance_before + amount",
            name="ck_balance_transactions_running_balance",
        ),
        CheckConstraint("balance_after >= 0", name="ck_balance_transactions_balance_non_negative"),
        Index("idx_balance_transactions_user_created", "user_id", "created_at", "id"),
        Index("idx_balance_transactions_reference", "reference_id", "reference_type"),
        Index(
            "uq_balance_transactions_deposit_reference",
            "reference_id",
            unique=True,
            postgresql_where=text(
                "transaction_type = 'deposit' AND reference_type = 'payment_intent'"
            ),
        ),
        Index(
            "uq_balance_transactions_payment_intent_payment",
            "reference_id",
            unique=True,
            postgresql_where=text(
                "transaction_type = 'payment' AND reference_type = 'payment_intent'"
            ),
        ),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    user_id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    transaction_type: Mapped[str] = mapped_column(String(16), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    balance_before: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    balance_after: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    cashback_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("''"))
    reference_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    reference_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    metadata_: Mapped[dict[str, object]] = mapped_column(
        "metadata",
        JSONB,
        nullable=False,
        default=dict,
        server_default=text("'{}'::jsonb"),
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
