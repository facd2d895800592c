import random

import pytest

from sqlblock.errors import EncodingError
from sqlblock.statement import RowCounts, build_statement


def test_postgres_statement_is_one_chained_insert(block):
    statement = build_statement(block, "postgresql")

    assert statement.is_single_statement
    assert statement.dialect == "postgresql"
    text = statement.text
    assert text.startswith("WITH ")
    assert text.count("INSERT INTO") == 21
    assert 'ON CONFLICT ("height") DO NOTHING RETURNING "height"' in text
    assert 'FROM "b" RETURNING "block_height", "index"' in text
    assert 'SELECT "t0"."block_height", "t0"."index",' in text
    assert 'FROM "t2" RETURNING "index"' in text
    assert ";" not in text
    assert text.rstrip().endswith('AS "events"')


def test_expected_counts(block):
    statement = build_statement(block, "postgresql")

    assert statement.height == 60034225
    assert statement.expected == RowCounts(blocks=1, transactions=3, events=17)
    assert statement.expected.total == 21


def test_statement_is_deterministic_for_any_input_order(block):
    shuffled_txs = list(block.transactions)
    random.Random(7).shuffle(shuffled_txs)
    shuffled = block.model_copy(update={
        "transactions": tuple(
            tx.model_copy(update={"logs": tuple(random.Random(tx.index).sample(tx.logs, len(tx.logs)))})
            for tx in shuffled_txs
        )
    })

    assert build_statement(shuffled, "postgresql").text == build_statement(block, "postgresql").text
    assert [c.sql for c in build_statement(shuffled, "sqlite").root.walk()] == \
        [c.sql for c in build_statement(block, "sqlite").root.walk()]


def test_sqlite_statement_is_a_guarded_clause_tree(block):
    statement = build_statement(block, "sqlite")

    assert not statement.is_single_statement
    assert statement.text is None
    root = statement.root
    assert root.alias == "b"
    assert root.table == "block"
    assert "RETURNING" not in root.sql
    assert root.sql.endswith('ON CONFLICT ("height") DO NOTHING')
    assert [child.alias for child in root.children] == ["t0", "t1", "t2"]
    assert [len(child.children) for child in root.children] == [6, 4, 7]
    assert root.children[1].children[0].alias == "e1_0"
    assert len(list(root.walk())) == 21


def test_clause_aliases_follow_index_order(block):
    root = build_statement(block, "sqlite").root

    for position, tx_clause in enumerate(root.children):
        assert tx_clause.table == "transaction"
        assert f"VALUES (60034225, {position}, " in tx_clause.sql
        for event_clause in tx_clause.children:
            assert event_clause.table == "event"
            assert f"VALUES (60034225, {position}, " in event_clause.sql


def test_wide_decimal_is_not_narrowed(block):
    wide = "9" * 78
    statement = build_statement(block.model_copy(update={"gas_limit": wide}), "postgresql")

    assert f"CAST('{wide}' AS NUMERIC)" in statement.text


@pytest.mark.parametrize("gas", ["12a", "-5", "1.5", "", "0x10"])
def test_invalid_decimal_raises(block, gas):
    with pytest.raises(EncodingError):
        build_statement(block.model_copy(update={"gas_used": gas}), "postgresql")


def test_empty_block(block):
    empty = block.model_copy(update={"transactions": ()})

    statement = build_statement(empty, "postgresql")

    assert statement.expected == RowCounts(blocks=1)
    assert statement.text.count("INSERT INTO") == 1
    assert '0 AS "transactions", 0 AS "events"' in statement.text
    assert build_statement(empty, "sqlite").root.children == ()


def test_transaction_without_logs(block):
    txs = (block.transactions[0].model_copy(update={"logs": ()}),)

    statement = build_statement(block.model_copy(update={"transactions": txs}), "postgresql")

    assert statement.expected == RowCounts(blocks=1, transactions=1)
    assert '(SELECT count(*) FROM "t0") AS "transactions", 0 AS "events"' in statement.text


def test_unsupported_dialect(block):
    with pytest.raises(EncodingError, match="Unsupported dialect"):
        build_statement(block, "oracle")


def test_row_counts_arithmetic():
    assert RowCounts(1, 2, 3) + RowCounts.for_table("event", 4) == RowCounts(1, 2, 7)
    assert RowCounts.for_table("block", 1).total == 1
    with pytest.raises(ValueError):
        RowCounts.for_table("receipt", 1)
