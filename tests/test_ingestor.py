import asyncio

import pytest

from sqlblock.classifier import IngestStatus
from sqlblock.errors import ConstraintViolation, EncodingError, ExecutionFailure
from sqlblock.execution import Failed, Rejected
from sqlblock.ingestor import BlockIngestor, submit

from conftest import FakeExecutor, replace_transaction


def failed():
    return Failed(ExecutionFailure("connection reset by peer"))


def test_retries_until_committed(block):
    executor = FakeExecutor([failed(), failed(), None])
    ingestor = BlockIngestor(executor, timeout=5, retries=5, base_delay=0)

    result = asyncio.run(ingestor.ingest(block))

    assert result.status is IngestStatus.INGESTED
    assert len(executor.statements) == 3
    assert executor.statements[0] is executor.statements[2]


def test_gives_up_after_retries(block):
    executor = FakeExecutor([failed()])
    ingestor = BlockIngestor(executor, timeout=5, retries=3, base_delay=0)

    result = asyncio.run(ingestor.ingest(block))

    assert result.status is IngestStatus.FAILED
    assert result.retryable
    assert isinstance(result.error, ExecutionFailure)
    assert len(executor.statements) == 3


def test_rejection_is_not_retried(block):
    executor = FakeExecutor([Rejected(ConstraintViolation("CHECK constraint failed: block_check"))])
    ingestor = BlockIngestor(executor, timeout=5, retries=5, base_delay=0)

    result = asyncio.run(ingestor.ingest(block))

    assert result.status is IngestStatus.REJECTED
    assert len(executor.statements) == 1


def test_timeout_is_an_unknown_outcome(block):
    executor = FakeExecutor(delay=0.5)
    ingestor = BlockIngestor(executor, timeout=0.05, retries=2, base_delay=0)

    result = asyncio.run(ingestor.ingest(block))

    assert result.status is IngestStatus.FAILED
    assert "did not finish" in result.reason
    assert result.error.height == block.height
    assert len(executor.statements) == 2


def test_encoding_error_never_reaches_executor(block):
    executor = FakeExecutor()
    ingestor = BlockIngestor(executor, timeout=5, retries=5, base_delay=0)

    result = asyncio.run(ingestor.ingest(block.model_copy(update={"gas_used": "lots"})))

    assert result.status is IngestStatus.REJECTED
    assert isinstance(result.error, EncodingError)
    assert result.error.height == block.height
    assert executor.statements == []


def test_unsupported_dialect_is_rejected(block):
    executor = FakeExecutor(dialect_name="mssql")

    result = submit(block, executor)

    assert result.status is IngestStatus.REJECTED
    assert executor.statements == []


def test_submit_does_not_retry(block):
    executor = FakeExecutor([failed(), None])

    result = submit(block, executor)

    assert result.status is IngestStatus.FAILED
    assert len(executor.statements) == 1


def test_ingest_many_keeps_input_order(block, executor, counts):
    blocks = [
        block.model_copy(update={"height": block.height + n, "sequence": block.sequence + n})
        for n in range(4)
    ]
    ingestor = BlockIngestor(executor, timeout=30, retries=3, base_delay=0, concurrency=2)

    results = asyncio.run(ingestor.ingest_many(blocks + [blocks[0]]))

    assert [result.height for result in results] == [block.height + n for n in range(4)] + [block.height]
    statuses = [result.status for result in results]
    assert statuses.count(IngestStatus.INGESTED) == 4
    assert statuses.count(IngestStatus.DUPLICATE) == 1
    assert all(result.ok for result in results)
    assert counts() == {"block": 4, "transaction": 12, "event": 68}


def test_ingest_many_isolates_bad_blocks(block, executor, counts):
    good = block
    bad = replace_transaction(
        block.model_copy(update={"height": block.height + 1, "sequence": block.sequence + 1}),
        0,
        from_address="",
    )
    ingestor = BlockIngestor(executor, timeout=30, retries=3, base_delay=0)

    results = asyncio.run(ingestor.ingest_many([good, bad]))

    assert [result.status for result in results] == [IngestStatus.INGESTED, IngestStatus.REJECTED]
    assert counts() == {"block": 1, "transaction": 3, "event": 17}


@pytest.mark.parametrize("retries", [1, 2])
def test_attempts_follow_retry_setting(block, retries):
    executor = FakeExecutor([failed()])
    ingestor = BlockIngestor(executor, timeout=5, retries=retries, base_delay=0)

    asyncio.run(ingestor.ingest(block))

    assert len(executor.statements) == retries
