"""Composite-key duplicate detection against previously stored transactions.

Two records with the same day, amount and first 50 description characters
are the same real-world event. The existing set is a snapshot fetched once per
run; duplicates within the new batch itself are kept.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import NamedTuple, Protocol

_DESCRIPTION_PREFIX: int = 50
_CENT = Decimal("0.01")


class DedupKey(NamedTuple):
    day: date
    amount: Decimal
    description: str


class _Keyed(Protocol):
    @property
    def date(self) -> date: ...

    @property
    def amount(self) -> Decimal: ...

    @property
    def description(self) -> str: ...


def dedup_key(day: date | datetime, amount: Decimal | float | str, description: str) -> DedupKey:
    """Build the key: calendar day, absolute amount to the cent, description prefix."""

    if isinstance(day, datetime):
        day = day.date()
    quantized = abs(Decimal(str(amount))).quantize(_CENT, rounding=ROUND_HALF_UP)
    return DedupKey(day, quantized, description[:_DESCRIPTION_PREFIX])


def key_of(record: _Keyed) -> DedupKey:
    return dedup_key(record.date, record.amount, record.description)


def date_window(records: Iterable[_Keyed]) -> tuple[date, date] | None:
    """Inclusive ``(first_day, last_day)`` spanned by ``records`` or ``None`` when empty."""

    days = [key_of(r).day for r in records]
    if not days:
        return None
    return min(days), max(days)


def drop_existing[T: _Keyed](
    new: Sequence[T], existing: Iterable[_Keyed]
) -> tuple[list[T], int]:
    """Return ``(survivors, skipped)`` where survivors have no key in ``existing``."""

    seen = {key_of(r) for r in existing}
    survivors = [r for r in new if key_of(r) not in seen]
    return survivors, len(new) - len(survivors)


__all__ = ["DedupKey", "date_window", "dedup_key", "drop_existing", "key_of"]
