from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import BOOLEAN, CheckConstraint, DateTime, Index, Numeric, String, Text, text
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from boostify.db.models.base import Base


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("role IN ('customer','booster','admin')", name="ck_users_role"),
        CheckConstraint("balance >= 0", name="ck_users_balance_non_negative"),
        CheckConstraint("cashback >= 0", name="ck_users_cashback_non_negative"),
        Index("idx_users_role", "role"),
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    name: Mapped[str | None] = mapped_column(Text, nullable=True)
    role: Mapped[str] = mapped_column(String(16), nullable=False, server_default=text("'customer'"))
    balance: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0.00"),
        server_default=text("0"),
    )
    cashback: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0.00"),
        server_default=text("0"),
    )
    stripe_connect_account_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    onboarding_complete: Mapped[bool] = mapped_column(
        BOOLEAN, nullable=False, default=False, server_default=text("false")
    )
    charges_enabled: Mapped[bool] = mapped_column(
        BOOLEAN, nullable=False, default=False, server_default=text("false")
    )
    payouts_enabled: Mapped[bool] = mapped_column(
        BOOLEAN, nullable=False, default=False, server_default=text("false")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("now()"),
    )
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
