"""Two-phase categorization engine.

Public API:
    - :func:`categorize_transactions`
    - :func:`recategorize_stored`
    - :class:`LlmClassifier` and the :class:`Classifier` /
      :class:`ClassificationBackend` protocols

Phase 1 sends batches of at most 50 transactions to an optional classifier;
if any batch fails, every AI result of the run is discarded. Phase 2 assigns
the first keyword-matching category of the transaction's type to whatever is
still uncategorized. An assigned category's type overrides the transaction
type, except for transfers.
"""

from __future__ import annotations

import math
import time
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, replace
from typing import NamedTuple, Protocol

from . import prompting
from .categorization import categories_of_type, match_keyword_category, parse_classification_lines
from .config import DEFAULT_CONFIG, IngestConfig
from .errors import ClassificationBackendFailure
from .logging_setup import get_logger
from .models import (
    CategorizedTransaction,
    Category,
    CategorySource,
    ParsedTransaction,
    StoredTransaction,
    TransactionType,
)
from .pmap import p_map

_CONCURRENCY: int = 4

_logger = get_logger("statement_import.categorize")


type IndexedTransaction = tuple[int, ParsedTransaction]


class ClassificationBackend(Protocol):
    """Free-text completion capability (system instruction + user input)."""

    def complete(self, instructions: str, user_input: str) -> str: ...


class Classifier(Protocol):
    """Maps batch indices to catalog category ids."""

    def classify(
        self, batch: Sequence[IndexedTransaction], catalog: Sequence[Category]
    ) -> Mapping[int, str]: ...


class LlmClassifier:
    """Classifier that prompts a text backend with ``index|type|amount|description`` lines."""

    def __init__(self, backend: ClassificationBackend) -> None:
        self.backend = backend

    def classify(
        self, batch: Sequence[IndexedTransaction], catalog: Sequence[Category]
    ) -> Mapping[int, str]:
        lines = [prompting.encode_transaction_line(i, tx) for i, tx in batch]
        try:
            text = self.backend.complete(
                prompting.build_system_instructions(catalog),
                prompting.build_user_content(lines),
            )
        except Exception as e:
            raise ClassificationBackendFailure(
                f"classification backend failed: {e.__class__.__name__}: {e}"
            ) from e
        return parse_classification_lines(
            text,
            allowed_indices={i for i, _ in batch},
            known_ids={c.id for c in catalog},
        )


class CategorizationResult(NamedTuple):
    items: list[CategorizedTransaction]
    ai: int
    keyword: int
    uncategorized: int
    ai_skipped: bool = False


@dataclass(frozen=True, slots=True)
class _Batch:
    page_index: int
    items: list[IndexedTransaction]


def _paginate(n_total: int, page_size: int) -> Iterable[tuple[int, int, int]]:
    """Yield ``(page_index, base, end)`` half-open ranges covering ``n_total`` items."""

    for k in range(math.ceil(n_total / page_size)):
        base = k * page_size
        yield k, base, min(base + page_size, n_total)


def apply_category(tx: ParsedTransaction, category: Category) -> ParsedTransaction:
    """Re-sync ``tx.type`` to the category type; transfers keep their type."""

    if tx.type is TransactionType.TRANSFER:
        return tx
    return replace(tx, type=TransactionType(category.type))


def _run_ai_phase(
    transactions: Sequence[ParsedTransaction],
    catalog: Sequence[Category],
    classifier: Classifier,
    *,
    batch_size: int,
    concurrency: int,
) -> dict[int, str] | None:
    """Return index -> category id for the whole run, or ``None`` when any batch failed."""

    known = {c.id for c in catalog}
    batches = [
        _Batch(k, [(i, transactions[i]) for i in range(base, end)])
        for k, base, end in _paginate(len(transactions), batch_size)
    ]

    def _classify(batch: _Batch) -> dict[int, str]:
        t0 = time.perf_counter()
        _logger.info(
            "categorize:batch_start page_index=%d num_transactions=%d",
            batch.page_index,
            len(batch.items),
        )
        raw = classifier.classify(batch.items, catalog)
        allowed = {i for i, _ in batch.items}
        accepted = {i: c for i, c in raw.items() if i in allowed and c in known}
        _logger.info(
            "categorize:batch_done page_index=%d assigned=%d latency_ms=%.2f",
            batch.page_index,
            len(accepted),
            (time.perf_counter() - t0) * 1000.0,
        )
        return accepted

    try:
        per_batch = p_map(batches, _classify, concurrency=concurrency, stop_on_error=True)
    except Exception as e:  # noqa: BLE001 - any backend failure skips the AI phase
        _logger.warning(
            "categorize:ai_phase_skipped batches=%d error=%s detail=%s",
            len(batches),
            e.__class__.__name__,
            e,
        )
        return None

    merged: dict[int, str] = {}
    for assigned in per_batch:
        merged.update(assigned)
    return merged


def categorize_transactions(
    transactions: Sequence[ParsedTransaction],
    catalog: Sequence[Category],
    *,
    classifier: Classifier | None = None,
    config: IngestConfig = DEFAULT_CONFIG,
    concurrency: int = _CONCURRENCY,
) -> CategorizationResult:
    """Categorize ``transactions`` against ``catalog``.

    Parameters
    ----------
    transactions:
        Normalized transactions; output order matches input order.
    catalog:
        Category catalog in matching order.
    classifier:
        Optional AI classifier. ``None`` runs the keyword phase only.
    config:
        Supplies ``ai_batch_size`` (never more than 50).
    concurrency:
        Maximum number of classification batches in flight.

    Returns
    -------
    CategorizationResult
        Categorized transactions plus AI, keyword and uncategorized counts.
    """

    txs = list(transactions)
    by_id = {c.id: c for c in catalog}
    assigned: dict[int, tuple[str, CategorySource]] = {}
    ai_skipped = False

    if classifier is not None and txs and catalog:
        ai = _run_ai_phase(
            txs,
            catalog,
            classifier,
            batch_size=config.ai_batch_size,
            concurrency=concurrency,
        )
        if ai is None:
            ai_skipped = True
        else:
            for i, cat_id in ai.items():
                txs[i] = apply_category(txs[i], by_id[cat_id])
                assigned[i] = (cat_id, "ai")

    n_ai = len(assigned)
    n_keyword = 0
    for i, tx in enumerate(txs):
        if i in assigned:
            continue
        match = match_keyword_category(tx.description, categories_of_type(catalog, tx.type.value))
        if match is not None:
            txs[i] = apply_category(tx, match)
            assigned[i] = (match.id, "keyword")
            n_keyword += 1

    items: list[CategorizedTransaction] = []
    for i, tx in enumerate(txs):
        hit = assigned.get(i)
        if hit is None:
            items.append(CategorizedTransaction(transaction=tx))
        else:
            items.append(CategorizedTransaction(transaction=tx, category_id=hit[0], source=hit[1]))

    uncategorized = len(txs) - len(assigned)
    _logger.info(
        "categorize:done total=%d ai=%d keyword=%d uncategorized=%d ai_skipped=%s",
        len(txs),
        n_ai,
        n_keyword,
        uncategorized,
        ai_skipped,
    )
    return CategorizationResult(
        items=items,
        ai=n_ai,
        keyword=n_keyword,
        uncategorized=uncategorized,
        ai_skipped=ai_skipped,
    )


def recategorize_stored(
    stored: Sequence[StoredTransaction],
    catalog: Sequence[Category],
    classifier: Classifier,
    *,
    config: IngestConfig = DEFAULT_CONFIG,
    concurrency: int = _CONCURRENCY,
) -> list[StoredTransaction] | None:
    """Re-run the AI phase over already stored transactions.

    Returns the rows whose category changed, each with its type re-synced to
    the new category (transfers excepted), or ``None`` when the backend failed
    and nothing should be written. Only the AI phase runs.
    """

    if not stored or not catalog:
        return []
    ai = _run_ai_phase(
        [s.transaction for s in stored],
        catalog,
        classifier,
        batch_size=config.ai_batch_size,
        concurrency=concurrency,
    )
    if ai is None:
        return None

    by_id = {c.id: c for c in catalog}
    changed: list[StoredTransaction] = []
    for i, cat_id in sorted(ai.items()):
        row = stored[i]
        tx = apply_category(row.transaction, by_id[cat_id])
        if cat_id == row.category_id and tx == row.transaction:
            continue
        changed.append(replace(row, transaction=tx, category_id=cat_id))
    _logger.info(
        "categorize:recategorized total=%d assigned=%d changed=%d",
        len(stored),
        len(ai),
        len(changed),
    )
    return changed


__all__ = [
    "CategorizationResult",
    "ClassificationBackend",
    "Classifier",
    "LlmClassifier",
    "apply_category",
    "categorize_transactions",
    "recategorize_stored",
]
