"""Paged bank-feed adapter.

The bank aggregation service (OAuth/session handling lives elsewhere) is seen
through :class:`TransactionFeed`: one call per page, each page carrying an
opaque continuation key until the feed is exhausted. Page payloads are
validated with Pydantic so malformed provider data fails loudly at the edge.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import date
from decimal import Decimal
from typing import Any, Literal, Protocol

from pydantic import BaseModel, ConfigDict, Field

from ..config import DEFAULT_CONFIG, IngestConfig
from ..errors import RowParseFailure
from ..logging_setup import get_logger
from ..models import ParsedTransaction, TransactionType
from ..normalize import is_transfer

_logger = get_logger("statement_import.ingest.feed")

_CENT = Decimal("0.01")


class FeedAmount(BaseModel):
    model_config = ConfigDict(extra="ignore")

    amount: Decimal
    currency: str = "EUR"


class FeedTransaction(BaseModel):
    model_config = ConfigDict(extra="ignore")

    entry_reference: str | None = None
    transaction_amount: FeedAmount
    credit_debit_indicator: Literal["CRDT", "DBIT"] = "DBIT"
    booking_date: date | None = None
    value_date: date | None = None
    transaction_date: date | None = None
    creditor_name: str | None = None
    debtor_name: str | None = None
    remittance_information: list[str] = Field(default_factory=list)


class FeedPage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    transactions: list[FeedTransaction] = Field(default_factory=list)
    continuation_key: str | None = None


class TransactionFeed(Protocol):
    def fetch_page(self, continuation_key: str | None) -> FeedPage: ...


def collect_feed(feed: TransactionFeed, *, max_pages: int | None = None) -> list[FeedTransaction]:
    """Drain ``feed`` page by page until it stops returning a continuation key.

    A continuation key seen twice ends the loop so a misbehaving provider
    cannot page forever; ``max_pages`` optionally caps the number of calls.
    """

    items: list[FeedTransaction] = []
    seen: set[str] = set()
    key: str | None = None
    pages = 0
    while True:
        page = feed.fetch_page(key)
        pages += 1
        items.extend(page.transactions)
        _logger.debug("feed:page index=%d items=%d", pages - 1, len(page.transactions))

        key = page.continuation_key or None
        if key is None:
            break
        if key in seen:
            _logger.warning("feed:repeated_continuation_key pages=%d key=%s", pages, key)
            break
        if max_pages is not None and pages >= max_pages:
            _logger.warning("feed:max_pages_reached pages=%d", pages)
            break
        seen.add(key)

    _logger.info("feed:collected pages=%d items=%d", pages, len(items))
    return items


def feed_item_to_transaction(
    item: FeedTransaction,
    config: IngestConfig = DEFAULT_CONFIG,
    *,
    fallback_date: date | None = None,
    position: int | None = None,
) -> ParsedTransaction | RowParseFailure:
    """Convert one feed item; CRDT means income, transfer phrases win."""

    counterparty = item.creditor_name or item.debtor_name or ""
    parts = [p for p in [counterparty, *item.remittance_information] if p and p.strip()]
    description = config.description_separator.join(p.strip() for p in parts)
    description = description or config.unknown_description

    tx_date = item.booking_date or item.value_date or item.transaction_date or fallback_date
    if tx_date is None:
        return RowParseFailure(position, "feed item has no date", item.entry_reference)

    amount = abs(item.transaction_amount.amount).quantize(_CENT)
    if amount == 0:
        return RowParseFailure(position, "zero amount", item.entry_reference)

    if is_transfer(description, config):
        tx_type = TransactionType.TRANSFER
    elif item.credit_debit_indicator == "CRDT":
        tx_type = TransactionType.INCOME
    else:
        tx_type = TransactionType.EXPENSE
    return ParsedTransaction(date=tx_date, description=description, amount=amount, type=tx_type)


class StaticFeed:
    """In-memory feed over pre-fetched pages (replays, tests).

    Continuation keys are the string index of the next page.
    """

    def __init__(self, pages: Sequence[FeedPage | Mapping[str, Any]]) -> None:
        self._pages = [p if isinstance(p, FeedPage) else FeedPage.model_validate(p) for p in pages]
        self.calls: list[str | None] = []

    def fetch_page(self, continuation_key: str | None) -> FeedPage:
        self.calls.append(continuation_key)
        idx = int(continuation_key) if continuation_key else 0
        if idx >= len(self._pages):
            return FeedPage()
        page = self._pages[idx]
        next_key = str(idx + 1) if idx + 1 < len(self._pages) else None
        return page.model_copy(update={"continuation_key": next_key})


__all__ = [
    "FeedAmount",
    "FeedPage",
    "FeedTransaction",
    "StaticFeed",
    "TransactionFeed",
    "collect_feed",
    "feed_item_to_transaction",
]
