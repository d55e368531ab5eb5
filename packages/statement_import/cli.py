# ruff: noqa: I001
"""CLI for the ``statement_import`` package.

Typer-based console interface. Environment variables (``DATABASE_URL``,
``OPENAI_API_KEY``, ...) are loaded from a local ``.env`` with
``python-dotenv`` before any command runs. Business logic lives in
``statement_import.pipeline`` and related modules; commands only wire stores,
the optional classifier and output.
"""

from __future__ import annotations

import json
import sys
from datetime import datetime
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from typer.models import OptionInfo

from .config import ai_concurrency_from_env
from .errors import EmptyInput, FormatUnrecognized, StatementImportError
from .logging_setup import configure_logging
from .models import ImportSummary


def _build_pipeline(*, database_url: str | None, use_ai: bool):
    # Local imports keep CLI startup fast and avoid DB/OpenAI setup for --help.
    from .openai_client import classifier_from_env
    from .persistence import SqlCategoryStore, SqlTransactionStore
    from .pipeline import ImportPipeline

    return ImportPipeline(
        categories=SqlCategoryStore(database_url=database_url),
        transactions=SqlTransactionStore(database_url=database_url),
        classifier=classifier_from_env() if use_ai else None,
        ai_concurrency=ai_concurrency_from_env(),
    )


def _print_summary(summary: ImportSummary) -> None:
    typer.echo(summary.model_dump_json(by_alias=True, indent=2))


def _fail(message: str) -> typer.Exit:
    print(f"Error: {message}", file=sys.stderr)
    return typer.Exit(1)


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Import bank statements (CSV, PDF or bank-feed dumps), categorize them and store "
        "the new transactions. Loads DATABASE_URL and OPENAI_API_KEY from a local .env."
    ),
)


# Module-level option objects to satisfy ruff B008 (no calls in parameter
# defaults).
PATH_OPTION: OptionInfo = typer.Option(
    ...,
    "--path",
    help="Statement file: .pdf is read as a PDF, anything else as delimited text.",
    dir_okay=False,
    file_okay=True,
    exists=False,  # the handler reports missing files itself
)
FEED_JSON_OPTION: OptionInfo = typer.Option(
    ...,
    "--json-path",
    help="JSON file holding a list of feed pages ({transactions: [...]}).",
    dir_okay=False,
    file_okay=True,
    exists=False,
)


@app.command("init-db")
def init_db_cmd(
    database_url: str | None = typer.Option(
        None, help="Override DATABASE_URL (falls back to env var)."
    ),
) -> None:
    """Create the statement tables if they do not exist."""

    from db.client import create_schema

    create_schema(database_url=database_url)
    typer.echo("Schema ready.")


@app.command("seed-categories")
def seed_categories_cmd(
    database_url: str | None = typer.Option(
        None, help="Override DATABASE_URL (falls back to env var)."
    ),
) -> None:
    """Insert the default category catalog (existing names are left alone)."""

    from db.client import session_scope

    from .ingest.seed_categories import seed_default_categories

    with session_scope(database_url=database_url) as session:
        added = seed_default_categories(session)
    typer.echo(f"Added {added} categories.")


@app.command("import-file")
def import_file_cmd(
    path: Annotated[Path, PATH_OPTION],
    *,
    database_url: str | None = typer.Option(
        None, help="Override DATABASE_URL (falls back to env var)."
    ),
    no_ai: bool = typer.Option(False, "--no-ai", help="Skip AI categorization."),
) -> None:
    """Import one statement file and print the run summary as JSON."""

    try:
        data = path.read_bytes()
    except FileNotFoundError:
        raise _fail(f"File not found: {path}") from None
    except PermissionError:
        raise _fail(f"Permission denied: {path}") from None

    pipeline = _build_pipeline(database_url=database_url, use_ai=not no_ai)
    try:
        if path.suffix.lower() == ".pdf":
            summary = pipeline.import_pdf(data, filename=path.name)
        else:
            summary = pipeline.import_delimited(data, filename=path.name)
    except FormatUnrecognized as e:
        shown = ", ".join(e.headers) or "<none>"
        raise _fail(f"unrecognized statement format in {path.name}; headers: {shown}") from e
    except EmptyInput as e:
        lines = [f"no transactions found in {path.name}"]
        if e.headers:
            lines.append(f"detected headers: {', '.join(e.headers)}")
        lines.extend(f"  {err}" for err in e.errors)
        raise _fail("\n".join(lines)) from e
    except StatementImportError as e:
        raise _fail(str(e)) from e
    _print_summary(summary)


@app.command("import-feed")
def import_feed_cmd(
    json_path: Annotated[Path, FEED_JSON_OPTION],
    *,
    database_url: str | None = typer.Option(
        None, help="Override DATABASE_URL (falls back to env var)."
    ),
    source_name: str = typer.Option("bank feed", help="Label stored on the import record."),
    no_ai: bool = typer.Option(False, "--no-ai", help="Skip AI categorization."),
) -> None:
    """Replay a JSON dump of bank-feed pages through the import pipeline."""

    from pydantic import ValidationError

    from .ingest.feed import StaticFeed

    try:
        pages = json.loads(json_path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise _fail(f"File not found: {json_path}") from None
    except json.JSONDecodeError as e:
        raise _fail(f"Invalid JSON in {json_path}: {e}") from e
    if isinstance(pages, dict):
        pages = [pages]

    try:
        feed = StaticFeed(pages)
    except ValidationError as e:
        raise _fail(f"Invalid feed page in {json_path}: {e}") from e

    pipeline = _build_pipeline(database_url=database_url, use_ai=not no_ai)
    try:
        summary = pipeline.import_feed(feed, source_name=source_name)
    except StatementImportError as e:
        raise _fail(str(e)) from e
    _print_summary(summary)


@app.command("recategorize")
def recategorize_cmd(
    month: str = typer.Option(..., "--month", help="Calendar month to revisit, as YYYY-MM."),
    *,
    database_url: str | None = typer.Option(
        None, help="Override DATABASE_URL (falls back to env var)."
    ),
    include_categorized: bool = typer.Option(
        False, "--all", help="Also re-run categorized transactions."
    ),
) -> None:
    """Re-run AI categorization over stored transactions of one month."""

    from .pipeline import month_bounds

    try:
        parsed = datetime.strptime(month, "%Y-%m")
    except ValueError:
        raise _fail(f"--month must look like YYYY-MM, got {month!r}") from None

    pipeline = _build_pipeline(database_url=database_url, use_ai=True)
    if pipeline.classifier is None:
        raise _fail("OPENAI_API_KEY is not set; recategorize needs the AI classifier")
    start, end = month_bounds(parsed.year, parsed.month)
    summary = pipeline.recategorize(start, end, include_categorized=include_categorized)
    typer.echo(summary.model_dump_json(by_alias=True, indent=2))
    if summary.errors:
        raise typer.Exit(1)


@app.callback()
def _root() -> None:
    """Load ``.env`` from the working directory and configure logging."""

    # override=False keeps already-set environment variables
    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging()


if __name__ == "__main__":  # pragma: no cover
    app()
