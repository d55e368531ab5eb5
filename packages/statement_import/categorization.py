"""Classifier response parsing and keyword matching.

Model output is treated as untrusted free text: only well-formed
``index|categoryId`` lines that reference a batch index and a catalog id are
kept, everything else is dropped without failing the batch.
"""

from __future__ import annotations

import re
from collections.abc import Collection, Iterable, Sequence

from .logging_setup import get_logger
from .models import Category

_logger = get_logger("statement_import.categorization")

# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------

_LEADING_BULLETS_RE = re.compile(r"^[\s\-*•]+")


def parse_classification_lines(
    text: str,
    *,
    allowed_indices: Collection[int],
    known_ids: Collection[str],
) -> dict[int, str]:
    """Parse ``index|categoryId`` lines from classifier output.

    A line is accepted when, after stripping list bullets, its first field is
    an integer in ``allowed_indices`` and its second field is in
    ``known_ids``. Later lines for the same index override earlier ones.
    """

    out: dict[int, str] = {}
    malformed = unknown = 0
    for raw_line in text.splitlines():
        line = _LEADING_BULLETS_RE.sub("", raw_line.strip())
        if not line:
            continue
        parts = line.split("|")
        if len(parts) < 2:
            malformed += 1
            continue
        try:
            idx = int(parts[0].strip())
        except ValueError:
            malformed += 1
            continue
        cat_id = parts[1].strip()
        if idx not in allowed_indices or not cat_id:
            malformed += 1
            continue
        if cat_id not in known_ids:
            unknown += 1
            continue
        out[idx] = cat_id

    if malformed or unknown:
        _logger.debug(
            "categorization:lines_dropped accepted=%d malformed=%d unknown_category=%d",
            len(out),
            malformed,
            unknown,
        )
    return out


# ---------------------------------------------------------------------------
# Keyword matching
# ---------------------------------------------------------------------------

_NOISE_PATTERNS: tuple[re.Pattern[str], ...] = (
    # IBAN, e.g. nl12ingb0001234567
    re.compile(r"\b[a-z]{2}\d{2}[a-z]{4}\d{10}\b"),
    # card and reference numbers
    re.compile(r"\b\d{6,}\b"),
    re.compile(r"\b\d{2}[-/.]\d{2}[-/.]\d{2,4}\b"),
    re.compile(r"\b\d{2}:\d{2}\b"),
    re.compile(
        r"\b(?:sepa|overboeking|betaalautomaat|gea|bea|ideal|ccv\*|pin|incasso|storting"
        r"|europees|pasvolgnr|transactie|omschrijving|kenmerk|machtiging|doorlopend)\b"
    ),
)


def normalize_description(description: str) -> str:
    """Lowercase and strip bank boilerplate (IBANs, numbers, dates, times, prefixes)."""

    s = description.lower()
    for pattern in _NOISE_PATTERNS:
        s = pattern.sub(" ", s)
    return " ".join(s.split())


def categories_of_type(catalog: Iterable[Category], tx_type: str) -> list[Category]:
    return [c for c in catalog if c.type == tx_type]


def match_keyword_category(description: str, candidates: Sequence[Category]) -> Category | None:
    """Return the first category (catalog order) with a keyword in the description.

    Keywords are matched as substrings of the lowercased description and of
    its noise-stripped form.
    """

    lower = description.lower()
    normalized = normalize_description(description)
    for category in candidates:
        for keyword in category.keywords:
            if keyword and (keyword in lower or keyword in normalized):
                return category
    return None


__all__ = [
    "categories_of_type",
    "match_keyword_category",
    "normalize_description",
    "parse_classification_lines",
]
