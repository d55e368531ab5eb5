from __future__ import annotations

from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest
from statement_import.categorization import (
    match_keyword_category,
    normalize_description,
    parse_classification_lines,
)
from statement_import.categorize import LlmClassifier, apply_category, categorize_transactions
from statement_import.config import DEFAULT_CONFIG
from statement_import.errors import ClassificationBackendFailure
from statement_import.models import ParsedTransaction, TransactionType
from statement_import.prompting import encode_transaction_line

from tests.helpers.stores import (
    DEFAULT_CATALOG,
    ENERGY,
    GROCERIES,
    INTEREST,
    SALARY,
    FailingClassifier,
    RecordingClassifier,
)


def _tx(
    description: str,
    tx_type: TransactionType = TransactionType.EXPENSE,
    amount: str = "10.00",
) -> ParsedTransaction:
    return ParsedTransaction(date(2024, 3, 1), description, Decimal(amount), tx_type)


def test_batches_never_exceed_fifty_items():
    txs = [_tx(f"merchant {i}") for i in range(120)]
    clf = RecordingClassifier(lambda i, tx: None)

    result = categorize_transactions(txs, DEFAULT_CATALOG, classifier=clf)

    sizes = sorted(len(b) for b in clf.batches)
    assert sizes == [20, 50, 50]
    assert sorted(i for b in clf.batches for i in b) == list(range(120))
    assert result.uncategorized == 120


def test_smaller_configured_batch_size_is_honoured():
    txs = [_tx(f"m{i}") for i in range(7)]
    clf = RecordingClassifier(lambda i, tx: None)
    config = replace(DEFAULT_CONFIG, ai_batch_size=3)

    categorize_transactions(txs, DEFAULT_CATALOG, classifier=clf, config=config)

    assert sorted(len(b) for b in clf.batches) == [1, 3, 3]


def test_ai_results_take_precedence_over_keywords():
    txs = [_tx("Albert Heijn 1234"), _tx("Vattenfall")]
    clf = RecordingClassifier(lambda i, tx: ENERGY.id if i == 0 else None)

    result = categorize_transactions(txs, DEFAULT_CATALOG, classifier=clf)

    assert [(c.category_id, c.source) for c in result.items] == [
        (ENERGY.id, "ai"),
        (ENERGY.id, "keyword"),
    ]
    assert (result.ai, result.keyword, result.uncategorized) == (1, 1, 0)


def test_backend_failure_skips_ai_phase_but_keeps_keyword_matches():
    txs = [_tx("Albert Heijn"), _tx("Unknown shop"), _tx("Loon maart", TransactionType.INCOME)]
    clf = FailingClassifier()

    result = categorize_transactions(txs, DEFAULT_CATALOG, classifier=clf)

    assert result.ai_skipped is True
    assert result.ai == 0
    assert result.keyword == 2
    assert result.uncategorized == 1
    assert [c.category_id for c in result.items] == [GROCERIES.id, None, SALARY.id]
    assert all(c.source in (None, "keyword") for c in result.items)


def test_one_failing_batch_discards_results_of_successful_batches():
    txs = [_tx(f"m{i}") for i in range(60)]

    def decide(i: int, tx: ParsedTransaction) -> str | None:
        if i >= 50:
            raise TimeoutError("slow batch")
        return GROCERIES.id

    result = categorize_transactions(
        txs, DEFAULT_CATALOG, classifier=RecordingClassifier(decide), concurrency=1
    )

    assert result.ai_skipped is True
    assert result.ai == 0
    assert result.uncategorized == 60


def test_unknown_ids_and_foreign_indices_from_classifier_are_ignored():
    txs = [_tx("a"), _tx("b")]

    class Sloppy:
        def classify(self, batch, catalog):
            return {0: "cat-missing", 1: GROCERIES.id, 99: GROCERIES.id}

    result = categorize_transactions(txs, DEFAULT_CATALOG, classifier=Sloppy())

    assert [c.category_id for c in result.items] == [None, GROCERIES.id]
    assert result.ai == 1


def test_category_type_overrides_transaction_type():
    # A refund arrives as income; the model files it under an expense category.
    refund = _tx("Retour Albert Heijn", TransactionType.INCOME)
    result = categorize_transactions(
        [refund], DEFAULT_CATALOG, classifier=RecordingClassifier(lambda i, tx: GROCERIES.id)
    )
    [item] = result.items
    assert item.category_id == GROCERIES.id
    assert item.type is TransactionType.EXPENSE


def test_transfer_type_is_preserved_when_categorized():
    tx = _tx("Naar Oranje Spaarrekening", TransactionType.TRANSFER)
    result = categorize_transactions(
        [tx], DEFAULT_CATALOG, classifier=RecordingClassifier(lambda i, t: INTEREST.id)
    )
    [item] = result.items
    assert item.category_id == INTEREST.id
    assert item.type is TransactionType.TRANSFER


def test_keyword_phase_only_considers_categories_of_the_same_type():
    # "rente" is an income keyword; an expense line must not pick it up.
    result = categorize_transactions([_tx("Rente hypotheek")], DEFAULT_CATALOG)
    assert result.items[0].category_id is None
    assert result.uncategorized == 1


def test_keyword_match_is_first_in_catalog_order():
    first = replace(GROCERIES, keywords=("shop",))
    second = replace(ENERGY, keywords=("energy shop",))
    assert match_keyword_category("The Energy Shop", [first, second]) is first
    assert match_keyword_category("The Energy Shop", [second, first]) is second


def test_keyword_match_sees_through_bank_noise():
    description = "BEA NR:XYZ123 01.03.24/12:34 Jumbo Utrecht NL12INGB0001234567"
    assert "jumbo utrecht" in normalize_description(description)
    assert match_keyword_category(description, [GROCERIES]) is GROCERIES


def test_without_classifier_only_keywords_run():
    txs = [_tx("Eneco"), _tx("Salaris", TransactionType.INCOME)]
    result = categorize_transactions(txs, DEFAULT_CATALOG)
    assert [c.source for c in result.items] == ["keyword", "keyword"]
    assert result.ai_skipped is False


def test_apply_category_resyncs_type():
    tx = _tx("x", TransactionType.EXPENSE)
    assert apply_category(tx, SALARY).type is TransactionType.INCOME
    assert apply_category(tx, GROCERIES) == tx


def test_parse_classification_lines_is_defensive():
    text = "\n".join(
        [
            "Here are the results:",
            "- 0|cat-groceries",
            "* 1 | cat-energy",
            "2|cat-unknown",
            "7|cat-groceries",
            "three|cat-energy",
            "3",
            "",
            "3|cat-salary|extra",
        ]
    )
    out = parse_classification_lines(
        text, allowed_indices={0, 1, 2, 3}, known_ids={c.id for c in DEFAULT_CATALOG}
    )
    assert out == {0: GROCERIES.id, 1: ENERGY.id, 3: SALARY.id}


def test_encode_transaction_line_strips_separators():
    tx = _tx("Jumbo | Utrecht\nfiliaal", amount="12.5")
    assert encode_transaction_line(4, tx) == "4|expense|12.50|Jumbo Utrecht filiaal"


class _Backend:
    def __init__(self, reply: str | Exception) -> None:
        self.reply = reply
        self.requests: list[tuple[str, str]] = []

    def complete(self, instructions: str, user_input: str) -> str:
        self.requests.append((instructions, user_input))
        if isinstance(self.reply, Exception):
            raise self.reply
        return self.reply


def test_llm_classifier_uses_global_indices_and_catalog():
    backend = _Backend("50|cat-groceries\n51|cat-energy\n3|cat-groceries")
    clf = LlmClassifier(backend)
    batch = [(50, _tx("Jumbo")), (51, _tx("Vattenfall"))]

    assert clf.classify(batch, DEFAULT_CATALOG) == {50: GROCERIES.id, 51: ENERGY.id}

    [(instructions, user_input)] = backend.requests
    assert "cat-groceries: Boodschappen" in instructions
    assert "cat-salary: Salaris" in instructions
    assert user_input.splitlines()[1:] == ["50|expense|10.00|Jumbo", "51|expense|10.00|Vattenfall"]


def test_llm_classifier_wraps_backend_errors():
    clf = LlmClassifier(_Backend(ConnectionError("boom")))
    with pytest.raises(ClassificationBackendFailure) as ei:
        clf.classify([(0, _tx("Jumbo"))], DEFAULT_CATALOG)
    assert isinstance(ei.value.__cause__, ConnectionError)
