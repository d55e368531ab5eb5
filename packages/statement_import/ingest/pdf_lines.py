"""Heuristic transaction extraction from PDF statement text.

Statement PDFs carry no column structure once flattened to text, so rows are
recovered from line shape alone:

- Phase A (line-based): a line with a date and an amount after it is one
  transaction; the text between the two is the description.
- Phase B (grouped fallback): only when Phase A finds nothing. A date line is
  joined with up to ``pdf_lookahead`` following lines until the first
  parsable non-zero amount, for statements that wrap one transaction over
  several physical lines.

Both phases return possibly-empty lists; the caller decides whether an empty
result is an error.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from ..config import DEFAULT_CONFIG, IngestConfig
from ..logging_setup import get_logger
from ..models import ParsedTransaction, TransactionType
from ..normalize import is_transfer, parse_amount

_logger = get_logger("statement_import.ingest.pdf_lines")

_MONTHS: dict[str, int] = {
    "jan": 1,
    "feb": 2,
    "mrt": 3,
    "mar": 3,
    "apr": 4,
    "mei": 5,
    "may": 5,
    "jun": 6,
    "jul": 7,
    "aug": 8,
    "sep": 9,
    "okt": 10,
    "oct": 10,
    "nov": 11,
    "dec": 12,
}


def _safe_date(y: int, m: int, d: int) -> date | None:
    try:
        return date(y, m, d)
    except ValueError:
        return None


def _two_digit_year(yy: str) -> int:
    value = int(yy)
    return 1900 + value if value > 50 else 2000 + value


@dataclass(frozen=True, slots=True)
class DatePattern:
    name: str
    regex: re.Pattern[str]
    build: Callable[[re.Match[str]], date | None]


# Ordered; the first pattern whose regex matches a line decides that line's
# date. Numeric patterns are digit-delimited so "2024-03-01" never reads as
# "24-03-01".
DATE_PATTERNS: tuple[DatePattern, ...] = (
    DatePattern(
        "dd-mm-yyyy",
        re.compile(r"(?<!\d)(\d{2})[-/.](\d{2})[-/.](\d{4})(?!\d)"),
        lambda m: _safe_date(int(m[3]), int(m[2]), int(m[1])),
    ),
    DatePattern(
        "dd-mm-yy",
        re.compile(r"(?<!\d)(\d{2})[-/.](\d{2})[-/.](\d{2})(?!\d)"),
        lambda m: _safe_date(_two_digit_year(m[3]), int(m[2]), int(m[1])),
    ),
    DatePattern(
        "yyyy-mm-dd",
        re.compile(r"(?<!\d)(\d{4})[-/.](\d{2})[-/.](\d{2})(?!\d)"),
        lambda m: _safe_date(int(m[1]), int(m[2]), int(m[3])),
    ),
    DatePattern(
        "d-mmm-yyyy",
        re.compile(
            r"(?<!\d)(\d{1,2})\s+(" + "|".join(_MONTHS) + r")[a-z]*\.?\s+(\d{4})(?!\d)",
            re.IGNORECASE,
        ),
        lambda m: _safe_date(int(m[3]), _MONTHS[m[2].lower()], int(m[1])),
    ),
)

# 1.234,56 | 1234,56 | 1234.56, optionally signed.
AMOUNT_PATTERN: re.Pattern[str] = re.compile(
    r"[+-]?\s*(?:\d{1,3}(?:\.\d{3})*,\d{2}|\d+,\d{2}|\d+\.\d{2})\b"
)

_EDGE_DASHES_RE = re.compile(r"^[-–\s]+|[-–\s]+$")
_WHITESPACE_RE = re.compile(r"\s+")

type AmountSelector = Callable[[Sequence[re.Match[str]]], re.Match[str] | None]


def select_amount(matches: Sequence[re.Match[str]]) -> re.Match[str] | None:
    """Pick the transaction amount among all amount matches on a line.

    Takes the last match: amounts usually trail the description. Lines that
    also print a running balance will pick the balance instead.
    """

    return matches[-1] if matches else None


def find_date(line: str) -> tuple[re.Match[str], date | None] | None:
    """Return the first matching pattern's match and its date (``None`` if invalid)."""

    for pattern in DATE_PATTERNS:
        m = pattern.regex.search(line)
        if m:
            return m, pattern.build(m)
    return None


def _clean_description(text: str, config: IngestConfig) -> str:
    cleaned = _EDGE_DASHES_RE.sub("", _WHITESPACE_RE.sub(" ", text)).strip()
    return cleaned or config.unknown_description


def _debit_regex(config: IngestConfig) -> re.Pattern[str]:
    words = "|".join(re.escape(w) for w in config.pdf_debit_keywords)
    return re.compile(rf"\b(?:{words})\b", re.IGNORECASE)


def _resolve_type(description: str, is_debit: bool, config: IngestConfig) -> TransactionType:
    if is_transfer(description, config):
        return TransactionType.TRANSFER
    return TransactionType.EXPENSE if is_debit else TransactionType.INCOME


def extract_line_transactions(
    lines: Sequence[str],
    config: IngestConfig = DEFAULT_CONFIG,
    *,
    choose_amount: AmountSelector = select_amount,
) -> list[ParsedTransaction]:
    """Phase A: one transaction per line holding both a date and an amount."""

    debit_re = _debit_regex(config)
    out: list[ParsedTransaction] = []
    for line in lines:
        found = find_date(line)
        if found is None:
            continue
        date_match, tx_date = found
        if tx_date is None:
            continue

        chosen = choose_amount(list(AMOUNT_PATTERN.finditer(line, date_match.end())))
        if chosen is None:
            continue
        amount = parse_amount(chosen.group(0))
        if amount is None or amount == 0:
            continue

        description = _clean_description(line[date_match.end() : chosen.start()], config)
        is_debit = bool(debit_re.search(line)) or chosen.group(0).lstrip().startswith("-")
        out.append(
            ParsedTransaction(
                date=tx_date,
                description=description,
                amount=abs(amount),
                type=_resolve_type(description, is_debit, config),
            )
        )
    return out


def extract_grouped_transactions(
    lines: Sequence[str],
    config: IngestConfig = DEFAULT_CONFIG,
    *,
    choose_amount: AmountSelector = select_amount,
) -> list[ParsedTransaction]:
    """Phase B: join a date line with following lines until an amount shows up."""

    debit_re = _debit_regex(config)
    out: list[ParsedTransaction] = []
    i = 0
    n = len(lines)
    while i < n:
        found = find_date(lines[i])
        if found is None:
            i += 1
            continue
        date_match, tx_date = found
        if tx_date is None:
            i += 1
            continue

        amount: Decimal | None = None
        amount_text = ""
        end = i
        for j in range(i, min(i + 1 + config.pdf_lookahead, n)):
            start = date_match.end() if j == i else 0
            chosen = choose_amount(list(AMOUNT_PATTERN.finditer(lines[j], start)))
            if chosen is None:
                continue
            candidate = parse_amount(chosen.group(0))
            if candidate is not None and candidate != 0:
                amount, amount_text, end = candidate, chosen.group(0), j
                break

        if amount is None:
            i += 1
            continue

        parts = [AMOUNT_PATTERN.sub("", lines[i][date_match.end() :])]
        parts.extend(AMOUNT_PATTERN.sub("", lines[k]) for k in range(i + 1, end + 1))
        description = _clean_description(" ".join(p.strip() for p in parts if p.strip()), config)
        is_debit = (
            bool(debit_re.search(" ".join(lines[i : end + 1])))
            or amount_text.lstrip().startswith("-")
        )
        out.append(
            ParsedTransaction(
                date=tx_date,
                description=description,
                amount=abs(amount),
                type=_resolve_type(description, is_debit, config),
            )
        )
        i = end + 1
    return out


def split_statement_lines(text: str) -> list[str]:
    return [line.strip() for line in text.splitlines() if line.strip()]


def extract_transactions(
    text: str, config: IngestConfig = DEFAULT_CONFIG
) -> list[ParsedTransaction]:
    """Run Phase A over the statement text, falling back to Phase B when it finds nothing."""

    lines = split_statement_lines(text)
    found = extract_line_transactions(lines, config)
    if found:
        _logger.info("pdf_lines:phase_a lines=%d transactions=%d", len(lines), len(found))
        return found
    grouped = extract_grouped_transactions(lines, config)
    _logger.info("pdf_lines:phase_b lines=%d transactions=%d", len(lines), len(grouped))
    return grouped


__all__ = [
    "AMOUNT_PATTERN",
    "DATE_PATTERNS",
    "AmountSelector",
    "DatePattern",
    "extract_grouped_transactions",
    "extract_line_transactions",
    "extract_transactions",
    "find_date",
    "select_amount",
    "split_statement_lines",
]
