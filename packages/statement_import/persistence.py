# ruff: noqa: I001
"""Persistence boundary for statement ingestion.

The pipeline talks to two collaborators, a category store and a transaction
store, through the protocols below. The SQL implementations use the shared
models in ``db.models.finance`` and sessions from ``db.client``.

Scope:
- Read the category catalog in matching order.
- Read the existing-transaction window used for duplicate detection.
- Write one import batch record plus its transactions in a single transaction.
- Read back stored transactions of a date range and write AI re-categorization
  results onto them.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Protocol

from sqlalchemy import select, update

from db.client import session_scope
from db.models.finance import StCategory, StImport, StTransaction
from .logging_setup import get_logger
from .models import (
    CategorizedTransaction,
    Category,
    ExistingTransaction,
    ParsedTransaction,
    StoredTransaction,
    TransactionType,
)

_logger = get_logger("statement_import.persistence")


class CategoryStore(Protocol):
    def load_categories(self) -> list[Category]: ...


class TransactionStore(Protocol):
    def fetch_window(self, start: date, end: date) -> list[ExistingTransaction]: ...

    def insert_many(
        self,
        items: Sequence[CategorizedTransaction],
        *,
        source: str,
        filename: str | None,
        row_count: int,
    ) -> str: ...

    def fetch_for_recategorization(
        self, start: date, end: date, *, include_categorized: bool = False
    ) -> list[StoredTransaction]: ...

    def update_categories(self, items: Sequence[StoredTransaction]) -> int: ...


def _to_decimal_2(raw: Decimal | float | str) -> Decimal:
    return Decimal(str(raw)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _norm_keywords(raw: object) -> tuple[str, ...]:
    if isinstance(raw, str):
        return Category.parse_keywords(raw)
    if isinstance(raw, list | tuple):
        return tuple(k.strip().lower() for k in raw if isinstance(k, str) and k.strip())
    return ()


class SqlCategoryStore:
    """Category catalog backed by ``st_categories`` (ordered by ``sort_order``, then name)."""

    def __init__(self, *, database_url: str | None = None) -> None:
        self.database_url = database_url

    def load_categories(self) -> list[Category]:
        stmt = select(StCategory).order_by(
            StCategory.sort_order.is_(None), StCategory.sort_order, StCategory.name
        )
        with session_scope(database_url=self.database_url) as session:
            rows = session.scalars(stmt).all()
            return [
                Category(
                    id=row.id,
                    name=row.name,
                    type=row.type,  # type: ignore[arg-type]
                    keywords=_norm_keywords(row.keywords),
                )
                for row in rows
            ]


class SqlTransactionStore:
    """Transactions backed by ``st_transactions`` with one ``st_imports`` row per run."""

    def __init__(self, *, database_url: str | None = None) -> None:
        self.database_url = database_url

    def fetch_window(self, start: date, end: date) -> list[ExistingTransaction]:
        stmt = select(StTransaction.date, StTransaction.amount, StTransaction.description).where(
            StTransaction.date >= start, StTransaction.date <= end
        )
        with session_scope(database_url=self.database_url) as session:
            return [
                ExistingTransaction(date=d, amount=_to_decimal_2(a), description=desc)
                for d, a, desc in session.execute(stmt)
            ]

    def insert_many(
        self,
        items: Sequence[CategorizedTransaction],
        *,
        source: str,
        filename: str | None,
        row_count: int,
    ) -> str:
        with session_scope(database_url=self.database_url) as session:
            batch = StImport(source=source, filename=filename, row_count=row_count)
            session.add(batch)
            session.flush()
            session.add_all(
                StTransaction(
                    date=item.date,
                    description=item.description,
                    amount=_to_decimal_2(item.amount),
                    type=item.type.value,
                    category_id=item.category_id,
                    category_source=item.source,
                    import_id=batch.id,
                )
                for item in items
            )
            import_id = batch.id
        _logger.info(
            "persistence:inserted import_id=%s source=%s rows=%d", import_id, source, len(items)
        )
        return import_id

    def fetch_for_recategorization(
        self, start: date, end: date, *, include_categorized: bool = False
    ) -> list[StoredTransaction]:
        """Stored rows dated ``start..end`` (inclusive), uncategorized ones only by default."""

        stmt = (
            select(StTransaction)
            .where(StTransaction.date >= start, StTransaction.date <= end)
            .order_by(StTransaction.date, StTransaction.id)
        )
        if not include_categorized:
            stmt = stmt.where(StTransaction.category_id.is_(None))
        with session_scope(database_url=self.database_url) as session:
            return [
                StoredTransaction(
                    id=row.id,
                    transaction=ParsedTransaction(
                        date=row.date,
                        description=row.description,
                        amount=_to_decimal_2(row.amount),
                        type=TransactionType(row.type),
                    ),
                    category_id=row.category_id,
                )
                for row in session.scalars(stmt)
            ]

    def update_categories(self, items: Sequence[StoredTransaction]) -> int:
        """Write AI category assignments (and synced types) back; return rows touched."""

        updated = 0
        with session_scope(database_url=self.database_url) as session:
            for item in items:
                stmt = (
                    update(StTransaction)
                    .where(StTransaction.id == item.id)
                    .values(
                        category_id=item.category_id,
                        category_source="ai",
                        type=item.transaction.type.value,
                    )
                )
                updated += session.execute(stmt).rowcount or 0
        _logger.info("persistence:recategorized rows=%d", updated)
        return updated


__all__ = [
    "CategoryStore",
    "SqlCategoryStore",
    "SqlTransactionStore",
    "TransactionStore",
]
