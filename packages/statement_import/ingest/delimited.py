"""Delimiter and column-role detection for bank CSV exports.

Dutch bank exports (ING, ABN AMRO, Rabobank, ...) disagree on delimiter,
header names and whether direction is a sign, an "Af Bij" column or separate
debit/credit columns. This module only binds columns to roles and emits
:class:`~statement_import.models.RawRow` values; parsing the values is the
normalizer's job.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field

from ..config import DEFAULT_CONFIG, ColumnRoleRule, IngestConfig
from ..errors import FormatUnrecognized
from ..logging_setup import get_logger
from ..models import RawRow

_logger = get_logger("statement_import.ingest.delimited")

_WORD_SPLIT_RE = re.compile(r"[^0-9a-z]+")


@dataclass(frozen=True, slots=True)
class ColumnMapping:
    """Bound column roles (role -> header index) plus extra description columns."""

    roles: dict[str, int]
    extra_description: tuple[int, ...] = ()


@dataclass(frozen=True, slots=True)
class DelimitedTable:
    delimiter: str
    headers: tuple[str, ...]
    mapping: ColumnMapping | None
    rows: list[RawRow] = field(default_factory=list)


def detect_delimiter(first_line: str) -> str:
    return ";" if ";" in first_line else ","


def split_line(line: str, delimiter: str) -> list[str]:
    """Split one line on ``delimiter`` outside double quotes.

    Quotes toggle the in-quotes state and are dropped from the token; tokens
    are trimmed. Escaped quotes (``""``) are not special.
    """

    tokens: list[str] = []
    current: list[str] = []
    in_quotes = False
    for ch in line:
        if ch == '"':
            in_quotes = not in_quotes
        elif ch == delimiter and not in_quotes:
            tokens.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
    tokens.append("".join(current).strip())
    return tokens


def normalize_header(header: str) -> str:
    return header.replace('"', "").strip().lower()


def _header_matches(header: str, rule: ColumnRoleRule) -> bool:
    if rule.match == "exact":
        return header in rule.synonyms
    if rule.match == "word":
        words = set(_WORD_SPLIT_RE.split(header))
        return any(s in words for s in rule.synonyms)
    return any(s in header for s in rule.synonyms)


def map_columns(headers: Sequence[str], config: IngestConfig = DEFAULT_CONFIG) -> ColumnMapping:
    """Bind each role to the first unclaimed header matching one of its synonyms.

    Raises
    ------
    FormatUnrecognized
        When no date column, or neither an amount nor a debit column, is bound.
    """

    roles: dict[str, int] = {}
    claimed: set[int] = set()
    for rule in config.column_rules:
        for idx, header in enumerate(headers):
            if idx not in claimed and _header_matches(header, rule):
                roles[rule.role] = idx
                claimed.add(idx)
                break

    if "date" not in roles or ("amount" not in roles and "debit" not in roles):
        raise FormatUnrecognized(headers)

    extra = tuple(
        idx
        for idx, header in enumerate(headers)
        if idx not in claimed and any(k in header for k in config.extra_description_headers)
    )
    return ColumnMapping(roles=roles, extra_description=extra)


def _row_values(
    tokens: Sequence[str], mapping: ColumnMapping, config: IngestConfig
) -> dict[str, str]:
    def cell(idx: int) -> str:
        return tokens[idx] if idx < len(tokens) else ""

    values = {role: cell(idx) for role, idx in mapping.roles.items()}

    parts: list[str] = []
    if "description" in mapping.roles:
        parts.append(values["description"])
    parts.extend(cell(idx) for idx in mapping.extra_description)
    parts = [p for p in parts if p]
    if parts or "description" in mapping.roles:
        values["description"] = config.description_separator.join(parts)
    return values


def detect_rows(text: str, config: IngestConfig = DEFAULT_CONFIG) -> DelimitedTable:
    """Detect delimiter and column roles and return one RawRow per data line.

    Blank lines and lines with fewer than two tokens are skipped. Input with
    fewer than two lines yields a table without rows.
    """

    lines = text.lstrip("\ufeff").strip().splitlines()
    if len(lines) < 2:
        return DelimitedTable(delimiter=",", headers=(), mapping=None, rows=[])

    delimiter = detect_delimiter(lines[0])
    headers = tuple(normalize_header(h) for h in split_line(lines[0], delimiter))
    mapping = map_columns(headers, config)
    _logger.debug(
        "delimited:columns delimiter=%r roles=%s extra=%s",
        delimiter,
        {role: headers[i] for role, i in mapping.roles.items()},
        [headers[i] for i in mapping.extra_description],
    )

    rows: list[RawRow] = []
    for line_no, line in enumerate(lines[1:], start=2):
        if not line.strip():
            continue
        tokens = split_line(line, delimiter)
        if len(tokens) < 2:
            continue
        rows.append(RawRow(line_no=line_no, values=_row_values(tokens, mapping, config)))

    return DelimitedTable(delimiter=delimiter, headers=headers, mapping=mapping, rows=rows)


__all__ = [
    "ColumnMapping",
    "DelimitedTable",
    "detect_delimiter",
    "detect_rows",
    "map_columns",
    "normalize_header",
    "split_line",
]
