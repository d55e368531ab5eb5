"""statement_import: bank statement ingestion.

Parses delimited exports, PDF statement text and paged bank feeds into
normalized transactions, categorizes them (AI batches with a keyword
fallback), drops records already present in the store and persists the rest.
"""

from __future__ import annotations

__all__: list[str] = []
