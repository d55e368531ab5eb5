"""Canonicalize raw date/amount/description strings into transactions.

Parsers return ``None`` instead of raising so that callers can turn a bad row
into a :class:`~statement_import.errors.RowParseFailure` and keep going.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from dateutil import parser as date_parser

from .config import DEFAULT_CONFIG, IngestConfig
from .errors import RowParseFailure
from .logging_setup import get_logger
from .models import ParsedTransaction, RawRow, TransactionType

_logger = get_logger("statement_import.normalize")

_COMPACT_DATE_RE = re.compile(r"^(\d{4})(\d{2})(\d{2})$")
_DAY_FIRST_DATE_RE = re.compile(r"^(\d{1,2})[-/.](\d{1,2})[-/.](\d{4})$")
_ISO_DATE_RE = re.compile(r"^(\d{4})[-/.](\d{2})[-/.](\d{2})")
_AMOUNT_STRIP_RE = re.compile(r"[^\d.,-]")
# Leading numeric prefix, the way a lenient float parser reads it.
_NUMERIC_PREFIX_RE = re.compile(r"-?(?:\d+(?:\.\d*)?|\.\d+)")

_CENT = Decimal("0.01")


def _safe_date(y: int, m: int, d: int) -> date | None:
    try:
        return date(y, m, d)
    except ValueError:
        return None


def parse_date(raw: str | None) -> date | None:
    """Parse a statement date.

    Accepted, in priority order: ``YYYYMMDD``; day-first ``D-M-YYYY`` with
    ``-``, ``/`` or ``.`` separators; a year-first ``YYYY-MM-DD`` prefix with
    the same separators (time suffixes allowed); anything ``dateutil`` can read
    day-first. Returns ``None`` when nothing matches or the date does not exist.
    """

    s = (raw or "").strip()
    if not s:
        return None

    if m := _COMPACT_DATE_RE.match(s):
        return _safe_date(int(m[1]), int(m[2]), int(m[3]))
    if m := _DAY_FIRST_DATE_RE.match(s):
        return _safe_date(int(m[3]), int(m[2]), int(m[1]))
    if m := _ISO_DATE_RE.match(s):
        return _safe_date(int(m[1]), int(m[2]), int(m[3]))

    try:
        return date_parser.parse(s, dayfirst=True).date()
    except (ValueError, OverflowError):
        return None


def parse_amount(raw: str | None) -> Decimal | None:
    """Parse a locale-ambiguous amount string into a signed 2-decimal value.

    Everything but digits, ``.``, ``,`` and ``-`` is removed. When a comma is
    present it is the decimal mark and dots are thousands separators
    (``"1.234,56"`` -> ``1234.56``); otherwise a dot is the decimal mark.
    Returns ``None`` when no numeric value remains.
    """

    if not raw:
        return None
    cleaned = _AMOUNT_STRIP_RE.sub("", raw)
    if "," in cleaned:
        cleaned = cleaned.replace(".", "").replace(",", ".", 1)
    m = _NUMERIC_PREFIX_RE.match(cleaned)
    if not m:
        return None
    try:
        return Decimal(m.group(0)).quantize(_CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        # More significant digits than the decimal context holds.
        return None


def is_transfer(description: str, config: IngestConfig = DEFAULT_CONFIG) -> bool:
    """Return True when the description names an internal transfer."""

    desc = description.lower()
    return any(phrase in desc for phrase in config.transfer_phrases)


def resolve_type(
    signed_amount: Decimal,
    description: str,
    config: IngestConfig = DEFAULT_CONFIG,
) -> TransactionType:
    """Derive the transaction type; transfer phrases beat the amount sign."""

    if is_transfer(description, config):
        return TransactionType.TRANSFER
    return TransactionType.INCOME if signed_amount >= 0 else TransactionType.EXPENSE


def _signed_amount(row: RawRow, config: IngestConfig) -> Decimal | str:
    """Return the signed amount for ``row`` or a failure reason string."""

    if "amount" in row.values:
        raw = row.values["amount"]
        amount = parse_amount(raw)
        if amount is None:
            return f"unparsable amount {raw!r}"
        if "direction" in row.values:
            # An explicit direction column is authoritative over the sign.
            indicator = row.values["direction"].strip().lower()
            return -abs(amount) if indicator in config.debit_indicators else abs(amount)
        return amount

    if "debit" in row.values or "credit" in row.values:
        debit = parse_amount(row.values.get("debit")) or Decimal("0.00")
        credit = parse_amount(row.values.get("credit")) or Decimal("0.00")
        return credit if credit > 0 else -abs(debit)

    return "no amount column"


def normalize_row(
    row: RawRow, config: IngestConfig = DEFAULT_CONFIG
) -> ParsedTransaction | RowParseFailure:
    """Convert one :class:`RawRow` into a transaction or a failure value."""

    raw_date = row.values.get("date")
    tx_date = parse_date(raw_date)
    if tx_date is None:
        return RowParseFailure(row.line_no, f"unparsable date {raw_date!r}")

    amount = _signed_amount(row, config)
    if isinstance(amount, str):
        return RowParseFailure(row.line_no, amount)
    if amount == 0:
        return RowParseFailure(row.line_no, "zero amount")

    description = (row.values.get("description") or "").strip() or config.unknown_description
    return ParsedTransaction(
        date=tx_date,
        description=description,
        amount=abs(amount),
        type=resolve_type(amount, description, config),
    )


def normalize_rows(
    rows: Iterable[RawRow], config: IngestConfig = DEFAULT_CONFIG
) -> tuple[list[ParsedTransaction], list[RowParseFailure]]:
    """Normalize ``rows``; failures are collected, never raised."""

    parsed: list[ParsedTransaction] = []
    failures: list[RowParseFailure] = []
    for row in rows:
        result = normalize_row(row, config)
        if isinstance(result, RowParseFailure):
            _logger.debug("normalize:row_skipped line=%s reason=%s", row.line_no, result.reason)
            failures.append(result)
        else:
            parsed.append(result)
    return parsed, failures


__all__ = [
    "is_transfer",
    "normalize_row",
    "normalize_rows",
    "parse_amount",
    "parse_date",
    "resolve_type",
]
