from __future__ import annotations

from datetime import date
from decimal import Decimal

from statement_import.errors import RowParseFailure
from statement_import.ingest.feed import (
    FeedPage,
    FeedTransaction,
    StaticFeed,
    collect_feed,
    feed_item_to_transaction,
)
from statement_import.models import ParsedTransaction, TransactionType


def _item(**overrides) -> FeedTransaction:
    payload = {
        "entry_reference": "ref-1",
        "transaction_amount": {"amount": "-25.47", "currency": "EUR"},
        "credit_debit_indicator": "DBIT",
        "booking_date": "2024-03-01",
        "creditor_name": "Albert Heijn",
        "remittance_information": ["Pasvolgnr 001"],
    }
    payload.update(overrides)
    return FeedTransaction.model_validate(payload)


def test_collect_feed_follows_continuation_keys():
    feed = StaticFeed(
        [
            {"transactions": [_item().model_dump(mode="json")]},
            {"transactions": [_item(entry_reference="ref-2").model_dump(mode="json")]},
            {"transactions": []},
        ]
    )
    items = collect_feed(feed)
    assert [i.entry_reference for i in items] == ["ref-1", "ref-2"]
    assert feed.calls == [None, "1", "2"]


def test_collect_feed_stops_on_repeated_continuation_key():
    class Looping:
        def __init__(self) -> None:
            self.calls = 0

        def fetch_page(self, continuation_key):
            self.calls += 1
            return FeedPage(transactions=[_item()], continuation_key="same")

    feed = Looping()
    items = collect_feed(feed)
    assert feed.calls == 2
    assert len(items) == 2


def test_collect_feed_honours_max_pages():
    feed = StaticFeed([{"transactions": [_item().model_dump(mode="json")]}] * 5)
    assert len(collect_feed(feed, max_pages=2)) == 2
    assert feed.calls == [None, "1"]


def test_provider_extras_are_ignored():
    item = _item(bankTransactionCode="PMNT", internalTransactionId="abc")
    assert item.entry_reference == "ref-1"


def test_debit_item_becomes_expense_with_positive_amount():
    tx = feed_item_to_transaction(_item())
    assert tx == ParsedTransaction(
        date=date(2024, 3, 1),
        description="Albert Heijn - Pasvolgnr 001",
        amount=Decimal("25.47"),
        type=TransactionType.EXPENSE,
    )


def test_credit_item_becomes_income():
    tx = feed_item_to_transaction(
        _item(
            credit_debit_indicator="CRDT",
            transaction_amount={"amount": "2500.00"},
            creditor_name=None,
            debtor_name="Werkgever BV",
            remittance_information=["Salaris maart"],
        )
    )
    assert isinstance(tx, ParsedTransaction)
    assert tx.type is TransactionType.INCOME
    assert tx.description == "Werkgever BV - Salaris maart"


def test_transfer_phrase_wins_over_indicator():
    tx = feed_item_to_transaction(
        _item(credit_debit_indicator="CRDT", remittance_information=["Van Oranje Spaarrekening"])
    )
    assert isinstance(tx, ParsedTransaction)
    assert tx.type is TransactionType.TRANSFER


def test_date_falls_back_through_value_date_then_default():
    valued = feed_item_to_transaction(_item(booking_date=None, value_date="2024-03-04"))
    assert isinstance(valued, ParsedTransaction) and valued.date == date(2024, 3, 4)

    undated = _item(booking_date=None)
    dated = feed_item_to_transaction(undated, fallback_date=date(2024, 4, 1))
    assert isinstance(dated, ParsedTransaction) and dated.date == date(2024, 4, 1)
    failure = feed_item_to_transaction(undated, position=3)
    assert isinstance(failure, RowParseFailure)
    assert failure.line_no == 3


def test_zero_amount_and_missing_description():
    zero = feed_item_to_transaction(_item(transaction_amount={"amount": "0"}))
    assert isinstance(zero, RowParseFailure)
    assert zero.reason == "zero amount"

    blank = feed_item_to_transaction(_item(creditor_name=None, remittance_information=[" "]))
    assert isinstance(blank, ParsedTransaction)
    assert blank.description == "Unknown transaction"
