"""Immutable pattern configuration for the ingestion pipeline.

Everything the detector, normalizer and PDF extractor match against lives in
:class:`IngestConfig`. Instances are frozen; tests build their own with
``dataclasses.replace(DEFAULT_CONFIG, ...)`` instead of mutating globals.
Environment-driven settings (model, concurrency) are read only by
:func:`ai_concurrency_from_env` and the OpenAI backend factory, never at
import time.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Literal

from .models import ColumnRole

# Hard ceiling on classification batch size.
MAX_AI_BATCH_SIZE: int = 50

_DEFAULT_AI_CONCURRENCY: int = 4

type MatchMode = Literal["substring", "word", "exact"]


@dataclass(frozen=True, slots=True)
class ColumnRoleRule:
    """Header synonyms for one column role and how they are compared.

    ``substring``: the synonym occurs anywhere in the header.
    ``word``: the synonym is a whole word of the header.
    ``exact``: the header equals the synonym.
    """

    role: ColumnRole
    synonyms: tuple[str, ...]
    match: MatchMode = "substring"


DEFAULT_TRANSFER_PHRASES: tuple[str, ...] = (
    "naar oranje spaarrekening",
    "van oranje spaarrekening",
    "naar beleggingsrek",
    "van beleggingsrek",
    "spaarrekening",
    "saldo aanvullen",
    "overschrijving beleggingsrekening",
    "kosten beleggen",
    "naar eigen rekening",
    "van eigen rekening",
    "tussenrekening",
)

# Evaluation order matters: a header claimed by an earlier rule is not
# offered to later ones (e.g. "af bij" must not also bind as debit/credit).
DEFAULT_COLUMN_RULES: tuple[ColumnRoleRule, ...] = (
    ColumnRoleRule("direction", ("af bij", "af/bij"), "exact"),
    ColumnRoleRule("date", ("datum", "date", "boekingsdatum", "transactiedatum")),
    ColumnRoleRule("amount", ("bedrag", "amount", "transactiebedrag")),
    ColumnRoleRule("description", ("omschrijving", "naam", "description", "tegenrekening")),
    ColumnRoleRule("debit", ("af", "debet", "debit"), "word"),
    ColumnRoleRule("credit", ("bij", "credit"), "word"),
)

DEFAULT_EXTRA_DESCRIPTION_HEADERS: tuple[str, ...] = ("mededelingen", "omschrijving", "naam")

DEFAULT_DEBIT_INDICATORS: frozenset[str] = frozenset({"af", "debet", "debit", "dbit", "d"})

DEFAULT_PDF_DEBIT_KEYWORDS: tuple[str, ...] = ("af", "debet", "debit")


@dataclass(frozen=True, slots=True)
class IngestConfig:
    transfer_phrases: tuple[str, ...] = DEFAULT_TRANSFER_PHRASES
    column_rules: tuple[ColumnRoleRule, ...] = DEFAULT_COLUMN_RULES
    extra_description_headers: tuple[str, ...] = DEFAULT_EXTRA_DESCRIPTION_HEADERS
    debit_indicators: frozenset[str] = field(default=DEFAULT_DEBIT_INDICATORS)
    pdf_debit_keywords: tuple[str, ...] = DEFAULT_PDF_DEBIT_KEYWORDS
    unknown_description: str = "Unknown transaction"
    description_separator: str = " - "
    pdf_lookahead: int = 5
    ai_batch_size: int = MAX_AI_BATCH_SIZE

    def __post_init__(self) -> None:
        if not 1 <= self.ai_batch_size <= MAX_AI_BATCH_SIZE:
            raise ValueError(f"ai_batch_size must be between 1 and {MAX_AI_BATCH_SIZE}")
        if self.pdf_lookahead < 1:
            raise ValueError("pdf_lookahead must be a positive integer")


DEFAULT_CONFIG = IngestConfig()


def ai_concurrency_from_env() -> int:
    """Resolve classification batch concurrency.

    Honors ``STATEMENT_IMPORT_AI_CONCURRENCY`` when it is a positive integer
    (capped at 16); otherwise returns the default of 4.
    """

    raw = os.getenv("STATEMENT_IMPORT_AI_CONCURRENCY")
    try:
        value = int(raw) if raw else None
    except ValueError:
        value = None
    if value is not None and value > 0:
        return min(value, 16)
    return _DEFAULT_AI_CONCURRENCY


__all__ = [
    "DEFAULT_CONFIG",
    "MAX_AI_BATCH_SIZE",
    "ColumnRoleRule",
    "IngestConfig",
    "MatchMode",
    "ai_concurrency_from_env",
]
