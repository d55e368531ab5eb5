"""Prompt construction for batch transaction classification.

Transactions travel as compact ``index|type|amount|description`` lines and
the model answers with ``index|categoryId`` lines. The catalog is listed per
type partition so the model picks from the partition matching each line's
type.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from .models import Category, ParsedTransaction

_LINE_UNSAFE_RE = re.compile(r"[|\r\n]+")

_PARTITION_TITLES: tuple[tuple[str, str], ...] = (
    ("expense", "EXPENSE categories"),
    ("income", "INCOME categories"),
)


def encode_transaction_line(index: int, tx: ParsedTransaction) -> str:
    """Return ``index|type|amount|description`` with separators removed from the text."""

    description = " ".join(_LINE_UNSAFE_RE.sub(" ", tx.description).split())
    return f"{index}|{tx.type.value}|{tx.amount:.2f}|{description}"


def format_catalog(catalog: Sequence[Category]) -> str:
    sections: list[str] = []
    for cat_type, title in _PARTITION_TITLES:
        entries = [f"{c.id}: {c.name}" for c in catalog if c.type == cat_type]
        if entries:
            sections.append(f"{title}:\n" + "\n".join(entries))
    return "\n\n".join(sections)


def build_system_instructions(catalog: Sequence[Category]) -> str:
    """System instructions embedding the catalog for one classification call."""

    return (
        "You categorize Dutch bank transactions. Each input line is "
        "index|type|amount|description. Ignore IBANs, card numbers, dates, times and "
        "location codes; focus on the merchant or service. Use the amount as a hint "
        "when the description is ambiguous.\n\n"
        "Pick exactly one category id per transaction from the partition matching its "
        "type (expense lines from EXPENSE categories, income lines from INCOME "
        "categories). Never invent ids.\n\n"
        f"{format_catalog(catalog)}\n\n"
        "Answer with one line per transaction in the form index|categoryId and nothing "
        "else: no explanations, no headings."
    )


def build_user_content(lines: Sequence[str]) -> str:
    return "Categorize these transactions:\n" + "\n".join(lines)


__all__ = [
    "build_system_instructions",
    "build_user_content",
    "encode_transaction_line",
    "format_catalog",
]
