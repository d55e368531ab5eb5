from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import uuid4

from sqlalchemy import (
    JSON,
    BigInteger,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


def _new_id() -> str:
    return uuid4().hex


# SQLite only autoincrements INTEGER PRIMARY KEY columns.
_BigIntPk = BigInteger().with_variant(Integer, "sqlite")


# ---------------------------
# Reference: st_categories
# ---------------------------


class StCategory(Base):
    __tablename__ = "st_categories"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    # Lowercase keyword substrings in match order.
    keywords: Mapped[list[Any]] = mapped_column(JSON, nullable=False, default=list)
    sort_order: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("type in ('income','expense')", name="ck_st_category_type"),
    )


# ---------------------------
# Import batches: st_imports
# ---------------------------


class StImport(Base):
    """One persisted ingestion run (file upload or feed sync)."""

    __tablename__ = "st_imports"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    source: Mapped[str] = mapped_column(String(16), nullable=False)
    filename: Mapped[str | None] = mapped_column(Text, nullable=True)
    row_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


# ---------------------------
# Core: st_transactions
# ---------------------------


class StTransaction(Base):
    __tablename__ = "st_transactions"

    id: Mapped[int] = mapped_column(_BigIntPk, primary_key=True, autoincrement=True)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    # Absolute magnitude; direction lives in ``type``.
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    category_id: Mapped[str | None] = mapped_column(
        String(32), ForeignKey("st_categories.id", ondelete="SET NULL"), nullable=True
    )
    category_source: Mapped[str | None] = mapped_column(String(16), nullable=True)
    import_id: Mapped[str | None] = mapped_column(
        String(32), ForeignKey("st_imports.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_st_tx_amount_non_negative"),
        CheckConstraint("type in ('income','expense','transfer')", name="ck_st_tx_type"),
        CheckConstraint(
            "category_source IS NULL OR category_source in ('ai','keyword')",
            name="ck_st_tx_category_source",
        ),
        # Dedup window scans are by date range.
        Index("ix_st_tx_date", "date"),
    )


__all__ = ["Base", "StCategory", "StImport", "StTransaction"]
