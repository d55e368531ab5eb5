from __future__ import annotations

import json

import pytest
import statement_import.openai_client as oc
from statement_import.cli import app
from statement_import.persistence import SqlCategoryStore
from typer.testing import CliRunner

from tests.helpers.db import count_transactions, fetch_transactions
from tests.helpers.stores import RecordingClassifier

runner = CliRunner()


@pytest.fixture
def database_url(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    url = f"sqlite+pysqlite:///{tmp_path / 'cli.sqlite'}"
    assert runner.invoke(app, ["init-db", "--database-url", url]).exit_code == 0
    seeded = runner.invoke(app, ["seed-categories", "--database-url", url])
    assert seeded.exit_code == 0
    assert "Added 20 categories." in seeded.stdout
    return url


def test_import_file_prints_camel_case_summary(tmp_path, database_url):
    statement = tmp_path / "maart.csv"
    statement.write_text(
        "Datum;Naam / Omschrijving;Bedrag (EUR);Af Bij\n01-03-2024;Albert Heijn;25,47;Af\n",
        encoding="utf-8",
    )

    result = runner.invoke(
        app, ["import-file", "--path", str(statement), "--database-url", database_url]
    )

    assert result.exit_code == 0, result.output
    summary = json.loads(result.stdout)
    assert summary["imported"] == 1
    assert summary["keywordCategorized"] == 1
    assert summary["aiCategorized"] == 0
    assert count_transactions(database_url) == 1


def test_import_file_with_unknown_layout_exits_non_zero(tmp_path, database_url):
    statement = tmp_path / "weird.csv"
    statement.write_text("foo,bar\n1,2\n", encoding="utf-8")

    result = runner.invoke(
        app, ["import-file", "--path", str(statement), "--database-url", database_url]
    )

    assert result.exit_code == 1
    assert count_transactions(database_url) == 0


def test_import_feed_replays_json_pages(tmp_path, database_url):
    dump = tmp_path / "feed.json"
    dump.write_text(
        json.dumps(
            {
                "transactions": [
                    {
                        "transaction_amount": {"amount": "-12.50"},
                        "booking_date": "2024-03-02",
                        "creditor_name": "Jumbo",
                    }
                ]
            }
        ),
        encoding="utf-8",
    )

    result = runner.invoke(
        app,
        ["import-feed", "--json-path", str(dump), "--database-url", database_url, "--no-ai"],
    )

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["imported"] == 1


def test_import_file_without_usable_rows_shows_headers_and_reasons(tmp_path, database_url):
    statement = tmp_path / "leeg.csv"
    statement.write_text(
        "Datum;Naam / Omschrijving;Bedrag (EUR);Af Bij\nonbekend;Jumbo;3,10;Af\n",
        encoding="utf-8",
    )

    result = runner.invoke(
        app, ["import-file", "--path", str(statement), "--database-url", database_url]
    )

    assert result.exit_code == 1
    assert "detected headers: datum, naam / omschrijving" in result.output
    assert "line 2: unparsable date 'onbekend'" in result.output


def test_recategorize_requires_openai_key(database_url):
    result = runner.invoke(
        app, ["recategorize", "--month", "2024-03", "--database-url", database_url]
    )

    assert result.exit_code == 1
    assert "OPENAI_API_KEY" in result.output


def test_recategorize_rejects_malformed_month(database_url):
    result = runner.invoke(
        app, ["recategorize", "--month", "maart", "--database-url", database_url]
    )

    assert result.exit_code == 1
    assert "YYYY-MM" in result.output


def test_recategorize_assigns_stored_uncategorized_rows(tmp_path, database_url, monkeypatch):
    statement = tmp_path / "maart.csv"
    statement.write_text(
        "Datum;Naam / Omschrijving;Bedrag (EUR);Af Bij\n02-03-2024;Onbekende winkel;9,99;Af\n",
        encoding="utf-8",
    )
    imported = runner.invoke(
        app,
        ["import-file", "--path", str(statement), "--database-url", database_url, "--no-ai"],
    )
    assert json.loads(imported.stdout)["uncategorized"] == 1

    catalog = SqlCategoryStore(database_url=database_url).load_categories()
    groceries = next(c for c in catalog if c.name == "Boodschappen")
    clf = RecordingClassifier(lambda i, tx: groceries.id)
    monkeypatch.setattr(oc, "classifier_from_env", lambda: clf)

    result = runner.invoke(
        app, ["recategorize", "--month", "2024-03", "--database-url", database_url]
    )

    assert result.exit_code == 0, result.output
    summary = json.loads(result.stdout)
    assert (summary["updated"], summary["total"]) == (1, 1)
    assert summary["start"] == "2024-03-01"
    [row] = fetch_transactions(database_url)
    assert row.category_id == groceries.id
    assert row.category_source == "ai"
