"""Error taxonomy for statement ingestion.

Only input-level failures (:class:`FormatUnrecognized`, :class:`EmptyInput`,
:class:`UnreadableInput`) escape the pipeline. Row-level problems are reported
as :class:`RowParseFailure` values in the run summary, and classification
backend failures are absorbed by the categorization engine.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

type InputSource = Literal["delimited", "pdf", "feed"]


class StatementImportError(Exception):
    """Base class for errors raised by ``statement_import``."""


class FormatUnrecognized(StatementImportError):
    """Required columns could not be bound from the header line."""

    def __init__(self, headers: Sequence[str]) -> None:
        self.headers: tuple[str, ...] = tuple(headers)
        shown = ", ".join(self.headers) if self.headers else "<none>"
        super().__init__(
            f"Unrecognized statement format: need a date column and an amount or debit "
            f"column; found headers: {shown}"
        )


class EmptyInput(StatementImportError):
    """The input produced zero usable transactions.

    ``headers`` and ``errors`` carry what was seen on the way, so the message
    tells the user which columns were detected and why each row was dropped.
    """

    def __init__(
        self,
        source: InputSource,
        *,
        headers: Sequence[str] = (),
        errors: Sequence[str] = (),
    ) -> None:
        self.source = source
        self.headers: tuple[str, ...] = tuple(headers)
        self.errors: tuple[str, ...] = tuple(errors)
        if source == "pdf":
            msg = "No transactions found in PDF statement text"
        elif source == "feed":
            msg = "Bank feed returned no transactions"
        else:
            msg = "No transactions found in delimited input"
        if self.headers:
            msg += f"; detected headers: {', '.join(self.headers)}"
        if self.errors:
            msg += f"; row errors: {'; '.join(self.errors)}"
        super().__init__(msg)


class UnreadableInput(StatementImportError):
    """Bytes could not be decoded or statement text could not be extracted."""


class ClassificationBackendFailure(StatementImportError):
    """A classification backend call failed (network, HTTP, shape)."""


class UnknownCategoryReference(StatementImportError):
    """A classifier referenced a category id outside the catalog.

    Never raised by the pipeline; offending response lines are dropped. Kept
    so callers validating mappings themselves can signal the same condition.
    """


@dataclass(frozen=True, slots=True)
class RowParseFailure:
    """A source row that could not be turned into a transaction."""

    line_no: int | None
    reason: str
    raw: str | None = None

    def __str__(self) -> str:
        if self.line_no is None:
            return self.reason
        return f"line {self.line_no}: {self.reason}"


__all__ = [
    "ClassificationBackendFailure",
    "EmptyInput",
    "FormatUnrecognized",
    "InputSource",
    "RowParseFailure",
    "StatementImportError",
    "UnknownCategoryReference",
    "UnreadableInput",
]
