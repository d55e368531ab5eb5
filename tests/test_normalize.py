from __future__ import annotations

from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest
from statement_import.config import DEFAULT_CONFIG
from statement_import.errors import RowParseFailure
from statement_import.models import ParsedTransaction, RawRow, TransactionType
from statement_import.normalize import (
    is_transfer,
    normalize_row,
    normalize_rows,
    parse_amount,
    parse_date,
    resolve_type,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("20240301", date(2024, 3, 1)),
        ("01-03-2024", date(2024, 3, 1)),
        ("1/3/2024", date(2024, 3, 1)),
        ("31.12.2023", date(2023, 12, 31)),
        ("2024-03-01", date(2024, 3, 1)),
        ("2024/03/01", date(2024, 3, 1)),
        ("2024.03.01", date(2024, 3, 1)),
        ("2024-03-01T10:15:00Z", date(2024, 3, 1)),
        ("1 March 2024", date(2024, 3, 1)),
    ],
)
def test_parse_date_supported_forms(raw: str, expected: date):
    assert parse_date(raw) == expected


@pytest.mark.parametrize("raw", ["", "   ", None, "garbage", "20241332", "31-02-2024"])
def test_parse_date_returns_none_for_garbage(raw):
    assert parse_date(raw) is None


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("1.234,56", Decimal("1234.56")),
        ("1234.56", Decimal("1234.56")),
        ("25,47", Decimal("25.47")),
        ("-25,47", Decimal("-25.47")),
        ("EUR 1.000.000,00", Decimal("1000000.00")),
        ("€ 12", Decimal("12.00")),
        ("+3,5", Decimal("3.50")),
    ],
)
def test_parse_amount_locale_rules(raw: str, expected: Decimal):
    assert parse_amount(raw) == expected


@pytest.mark.parametrize("raw", ["", None, "abc", "-", ",", "9" * 30])
def test_parse_amount_returns_none_when_not_numeric(raw):
    assert parse_amount(raw) is None


def test_is_transfer_is_case_insensitive():
    assert is_transfer("Naar Oranje Spaarrekening V123")
    assert is_transfer("overboeking TUSSENREKENING")
    assert not is_transfer("Albert Heijn")


def test_resolve_type_transfer_beats_sign():
    assert resolve_type(Decimal("10"), "Van eigen rekening") is TransactionType.TRANSFER
    assert resolve_type(Decimal("-10"), "Jumbo") is TransactionType.EXPENSE
    assert resolve_type(Decimal("10"), "Salaris") is TransactionType.INCOME


def test_custom_transfer_phrases_come_from_config():
    config = replace(DEFAULT_CONFIG, transfer_phrases=("savings pot",))
    assert is_transfer("Move to SAVINGS POT", config)
    assert not is_transfer("spaarrekening", config)


def test_normalize_row_direction_column_is_authoritative():
    row = RawRow(
        line_no=2,
        values={
            "date": "01-03-2024",
            "description": "Albert Heijn",
            "amount": "25,47",
            "direction": "Af",
        },
    )
    tx = normalize_row(row)
    assert tx == ParsedTransaction(
        date=date(2024, 3, 1),
        description="Albert Heijn",
        amount=Decimal("25.47"),
        type=TransactionType.EXPENSE,
    )

    credit = RawRow(
        line_no=3,
        values={
            "date": "01-03-2024",
            "description": "Refund",
            "amount": "-5,00",
            "direction": "Bij",
        },
    )
    result = normalize_row(credit)
    assert isinstance(result, ParsedTransaction)
    assert result.type is TransactionType.INCOME
    assert result.amount == Decimal("5.00")


def test_normalize_row_transfer_overrides_credit_indicator():
    row = RawRow(
        line_no=2,
        values={
            "date": "01-03-2024",
            "description": "Naar oranje spaarrekening",
            "amount": "100,00",
            "direction": "Bij",
        },
    )
    result = normalize_row(row)
    assert isinstance(result, ParsedTransaction)
    assert result.type is TransactionType.TRANSFER


def test_normalize_row_debit_credit_columns():
    spent = RawRow(2, {"date": "2024-03-01", "description": "Jumbo", "debit": "12.50"})
    earned = RawRow(3, {"date": "2024-03-01", "description": "Loon", "credit": "1000.00"})
    a = normalize_row(spent)
    b = normalize_row(earned)
    assert isinstance(a, ParsedTransaction) and a.type is TransactionType.EXPENSE
    assert a.amount == Decimal("12.50")
    assert isinstance(b, ParsedTransaction) and b.type is TransactionType.INCOME


def test_normalize_row_uses_sentinel_for_missing_description():
    result = normalize_row(RawRow(2, {"date": "2024-03-01", "description": "", "amount": "-1,00"}))
    assert isinstance(result, ParsedTransaction)
    assert result.description == DEFAULT_CONFIG.unknown_description


@pytest.mark.parametrize(
    ("values", "reason"),
    [
        ({"date": "someday", "amount": "1,00"}, "unparsable date"),
        ({"date": "2024-03-01", "amount": "n/a"}, "unparsable amount"),
        ({"date": "2024-03-01", "amount": "0,00"}, "zero amount"),
    ],
)
def test_normalize_row_failures_are_values(values, reason):
    result = normalize_row(RawRow(7, values))
    assert isinstance(result, RowParseFailure)
    assert reason in result.reason
    assert str(result).startswith("line 7: ")


def test_normalize_rows_never_outputs_non_positive_amounts():
    rows = [
        RawRow(2, {"date": "2024-03-01", "description": "a", "amount": "-1,00"}),
        RawRow(3, {"date": "2024-03-01", "description": "b", "amount": "0"}),
        RawRow(4, {"date": "bad", "description": "c", "amount": "5"}),
        RawRow(5, {"date": "2024-03-02", "description": "d", "amount": "5"}),
    ]
    parsed, failures = normalize_rows(rows)
    assert len(parsed) + len(failures) == len(rows)
    assert [t.description for t in parsed] == ["a", "d"]
    assert all(t.amount > 0 for t in parsed)
    assert [f.line_no for f in failures] == [3, 4]
