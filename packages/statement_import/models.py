"""Data models and type aliases for ``statement_import``.

Records crossing module boundaries are immutable dataclasses; the run summary
is a Pydantic model so it serializes with the camelCase keys consumers expect.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class TransactionType(StrEnum):
    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"


# Category types are a subset of transaction types: transfers never carry a
# category partition of their own.
type CategoryType = Literal["income", "expense"]

type CategorySource = Literal["ai", "keyword"]

# Column roles the delimited detector can bind.
type ColumnRole = Literal["date", "description", "amount", "debit", "credit", "direction"]


@dataclass(frozen=True, slots=True)
class RawRow:
    """One data line of a delimited export, keyed by bound column role.

    ``line_no`` is the 1-based physical line in the source text (the header is
    line 1) so parse failures can point back at the file.
    """

    line_no: int
    values: Mapping[str, str]


@dataclass(frozen=True, slots=True)
class ParsedTransaction:
    """A normalized transaction.

    ``amount`` is always the non-negative magnitude (2 decimals); direction is
    carried by ``type``.
    """

    date: date
    description: str
    amount: Decimal
    type: TransactionType

    def __post_init__(self) -> None:
        if not self.description:
            raise ValueError("ParsedTransaction.description must be non-empty")
        if self.amount < 0:
            raise ValueError("ParsedTransaction.amount must be non-negative")


@dataclass(frozen=True, slots=True)
class Category:
    id: str
    name: str
    type: CategoryType
    keywords: tuple[str, ...] = field(default_factory=tuple)

    @staticmethod
    def parse_keywords(raw: str | None) -> tuple[str, ...]:
        """Split a comma-separated keyword string (lowercased, blanks dropped)."""

        if not raw:
            return ()
        return tuple(k.strip().lower() for k in raw.split(",") if k.strip())


@dataclass(frozen=True, slots=True)
class CategorizedTransaction:
    """A parsed transaction with its (optional) category assignment.

    ``type`` reflects the effective type after categorization: when a category
    is assigned, its type wins unless the transaction is a transfer.
    """

    transaction: ParsedTransaction
    category_id: str | None = None
    source: CategorySource | None = None

    @property
    def date(self) -> date:
        return self.transaction.date

    @property
    def description(self) -> str:
        return self.transaction.description

    @property
    def amount(self) -> Decimal:
        return self.transaction.amount

    @property
    def type(self) -> TransactionType:
        return self.transaction.type


@dataclass(frozen=True, slots=True)
class ExistingTransaction:
    """Minimal view of a stored transaction used for duplicate detection."""

    date: date
    amount: Decimal
    description: str


@dataclass(frozen=True, slots=True)
class StoredTransaction:
    """A persisted transaction read back for re-categorization."""

    id: int
    transaction: ParsedTransaction
    category_id: str | None = None


class ImportSummary(BaseModel):
    """Outcome of one ingestion run.

    Serialize with ``model_dump(by_alias=True)`` to obtain the camelCase shape
    (``aiCategorized``, ``keywordCategorized``, ...).
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    imported: int = 0
    total: int = 0
    categorized: int = 0
    ai_categorized: int = 0
    keyword_categorized: int = 0
    uncategorized: int = 0
    skipped: int = 0
    errors: list[str] = Field(default_factory=list)
    source: str | None = None
    import_id: str | None = None

    @field_validator(
        "imported",
        "total",
        "categorized",
        "ai_categorized",
        "keyword_categorized",
        "uncategorized",
        "skipped",
    )
    @classmethod
    def _non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("counts must be non-negative")
        return v


class RecategorizeSummary(BaseModel):
    """Outcome of one re-categorization run over stored transactions."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    updated: int = 0
    total: int = 0
    errors: list[str] = Field(default_factory=list)
    start: date | None = None
    end: date | None = None


__all__ = [
    "CategorizedTransaction",
    "Category",
    "CategorySource",
    "CategoryType",
    "ColumnRole",
    "ExistingTransaction",
    "ImportSummary",
    "ParsedTransaction",
    "RawRow",
    "RecategorizeSummary",
    "StoredTransaction",
    "TransactionType",
]
