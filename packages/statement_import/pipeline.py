"""Ingestion orchestrator.

Every import entrypoint runs the same linear sequence:

    parse/extract -> normalize -> categorize -> dedup -> persist

Everything before the final ``insert_many`` happens in memory, so a failed
or aborted run leaves the store untouched. Input-level problems raise
(:class:`~statement_import.errors.FormatUnrecognized`,
:class:`~statement_import.errors.EmptyInput`,
:class:`~statement_import.errors.UnreadableInput`); row-level problems end up
in ``ImportSummary.errors``.

:meth:`ImportPipeline.recategorize` works on rows already in the store instead:

    fetch range -> AI phase -> update categories
"""

from __future__ import annotations

import calendar
from collections.abc import Callable, Sequence
from datetime import date

from .categorize import Classifier, categorize_transactions, recategorize_stored
from .config import DEFAULT_CONFIG, IngestConfig
from .duplicates import date_window, drop_existing
from .errors import EmptyInput, RowParseFailure, UnreadableInput
from .ingest.delimited import detect_rows
from .ingest.feed import TransactionFeed, collect_feed, feed_item_to_transaction
from .ingest.pdf_lines import extract_transactions
from .ingest.pdf_text import extract_pdf_text
from .logging_setup import get_logger
from .models import ImportSummary, ParsedTransaction, RecategorizeSummary
from .normalize import normalize_rows
from .persistence import CategoryStore, TransactionStore

_logger = get_logger("statement_import.pipeline")

_AI_SKIPPED_MESSAGE = "AI categorization skipped: classification backend failed"


def decode_text(data: bytes | str) -> str:
    """Decode uploaded bytes as UTF-8 (BOM tolerated), falling back to Windows-1252."""

    if isinstance(data, str):
        return data
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        pass
    try:
        return data.decode("cp1252")
    except UnicodeDecodeError as e:
        raise UnreadableInput(f"Could not decode input as UTF-8 or Windows-1252: {e}") from e


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last day of a calendar month."""

    return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])


class ImportPipeline:
    """Runs one ingestion per call against the configured stores.

    Parameters
    ----------
    categories:
        Source of the category catalog (read once per run).
    transactions:
        Source of the existing-transaction window and sink for new records.
    classifier:
        Optional AI classifier; ``None`` means keyword categorization only.
    config:
        Pattern configuration shared by the detector, normalizer and extractor.
    ai_concurrency:
        Maximum number of classification batches in flight.
    """

    def __init__(
        self,
        *,
        categories: CategoryStore,
        transactions: TransactionStore,
        classifier: Classifier | None = None,
        config: IngestConfig = DEFAULT_CONFIG,
        ai_concurrency: int = 4,
    ) -> None:
        self.categories = categories
        self.transactions = transactions
        self.classifier = classifier
        self.config = config
        self.ai_concurrency = ai_concurrency

    # ---- entrypoints ---------------------------------------------------------

    def import_delimited(self, data: bytes | str, *, filename: str | None = None) -> ImportSummary:
        table = detect_rows(decode_text(data), self.config)
        parsed, failures = normalize_rows(table.rows, self.config)
        if not parsed:
            _logger.warning(
                "import:empty source=delimited rows=%d failures=%d", len(table.rows), len(failures)
            )
            raise EmptyInput(
                "delimited", headers=table.headers, errors=[str(f) for f in failures]
            )
        return self._finish(
            parsed, failures, source="delimited", filename=filename, row_count=len(table.rows)
        )

    def import_pdf(
        self,
        data: bytes,
        *,
        filename: str | None = None,
        extract_text: Callable[[bytes], str] = extract_pdf_text,
    ) -> ImportSummary:
        return self.import_pdf_text(extract_text(data), filename=filename)

    def import_pdf_text(self, text: str, *, filename: str | None = None) -> ImportSummary:
        parsed = extract_transactions(text, self.config)
        if not parsed:
            _logger.warning("import:empty source=pdf chars=%d", len(text))
            raise EmptyInput("pdf")
        return self._finish(parsed, [], source="pdf", filename=filename, row_count=len(parsed))

    def import_feed(
        self,
        feed: TransactionFeed,
        *,
        source_name: str | None = None,
        fallback_date: date | None = None,
        max_pages: int | None = None,
    ) -> ImportSummary:
        """Drain a paged feed, then run the shared pipeline over all of its items.

        An exhausted feed with no items is not an error: an all-zero summary is
        returned and nothing is written.
        """

        items = collect_feed(feed, max_pages=max_pages)
        parsed: list[ParsedTransaction] = []
        failures: list[RowParseFailure] = []
        for pos, item in enumerate(items, start=1):
            result = feed_item_to_transaction(
                item, self.config, fallback_date=fallback_date, position=pos
            )
            if isinstance(result, RowParseFailure):
                failures.append(result)
            else:
                parsed.append(result)

        if not parsed:
            _logger.info("import:nothing_new source=feed items=%d", len(items))
            return ImportSummary(source="feed", errors=[str(f) for f in failures])
        return self._finish(
            parsed, failures, source="feed", filename=source_name, row_count=len(items)
        )

    # ---- shared tail ---------------------------------------------------------

    def _finish(
        self,
        parsed: Sequence[ParsedTransaction],
        failures: Sequence[RowParseFailure],
        *,
        source: str,
        filename: str | None,
        row_count: int,
    ) -> ImportSummary:
        catalog = self.categories.load_categories()
        result = categorize_transactions(
            parsed,
            catalog,
            classifier=self.classifier,
            config=self.config,
            concurrency=self.ai_concurrency,
        )

        window = date_window(result.items)
        existing = self.transactions.fetch_window(*window) if window else []
        survivors, skipped = drop_existing(result.items, existing)

        import_id: str | None = None
        if survivors:
            import_id = self.transactions.insert_many(
                survivors, source=source, filename=filename, row_count=row_count
            )

        errors = [str(f) for f in failures]
        if result.ai_skipped:
            errors.append(_AI_SKIPPED_MESSAGE)

        summary = ImportSummary(
            imported=len(survivors),
            total=len(parsed),
            categorized=result.ai + result.keyword,
            ai_categorized=result.ai,
            keyword_categorized=result.keyword,
            uncategorized=result.uncategorized,
            skipped=skipped,
            errors=errors,
            source=source,
            import_id=import_id,
        )
        _logger.info(
            "import:done source=%s total=%d imported=%d skipped=%d ai=%d keyword=%d errors=%d",
            source,
            summary.total,
            summary.imported,
            summary.skipped,
            summary.ai_categorized,
            summary.keyword_categorized,
            len(errors),
        )
        return summary

    # ---- stored transactions -------------------------------------------------

    def recategorize(
        self, start: date, end: date, *, include_categorized: bool = False
    ) -> RecategorizeSummary:
        """Ask the classifier again about stored transactions dated ``start..end``.

        By default only uncategorized rows are sent; ``include_categorized``
        re-runs every row in the range. Assignments are written with source
        ``"ai"`` and the category's type. A backend failure writes nothing and
        is reported in ``errors``.
        """

        if self.classifier is None:
            raise ValueError("recategorize needs a classifier")
        stored = self.transactions.fetch_for_recategorization(
            start, end, include_categorized=include_categorized
        )
        if not stored:
            _logger.info("recategorize:nothing_to_do start=%s end=%s", start, end)
            return RecategorizeSummary(start=start, end=end)

        changed = recategorize_stored(
            stored,
            self.categories.load_categories(),
            self.classifier,
            config=self.config,
            concurrency=self.ai_concurrency,
        )
        if changed is None:
            return RecategorizeSummary(
                total=len(stored), errors=[_AI_SKIPPED_MESSAGE], start=start, end=end
            )

        updated = self.transactions.update_categories(changed) if changed else 0
        _logger.info(
            "recategorize:done start=%s end=%s total=%d updated=%d",
            start,
            end,
            len(stored),
            updated,
        )
        return RecategorizeSummary(updated=updated, total=len(stored), start=start, end=end)


__all__ = ["ImportPipeline", "decode_text", "month_bounds"]
