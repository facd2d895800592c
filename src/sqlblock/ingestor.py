import asyncio
import time
from typing import Iterable, List

from loguru import logger

from sqlblock.classifier import IngestResult, IngestStatus, classify
from sqlblock.data_types import Block
from sqlblock.errors import EncodingError, ExecutionFailure
from sqlblock.execution import Executor, Failed
from sqlblock.metrics import UNKNOWN_OUTCOMES, record_result
from sqlblock.statement import Statement, build_statement
from sqlblock.utils import async_retry


def _log_result(result: IngestResult) -> None:
    if result.status is IngestStatus.INGESTED:
        logger.info(f"Ingested block {result.height}: {result.rows.transactions} transactions, {result.rows.events} events")
    elif result.status is IngestStatus.DUPLICATE:
        logger.info(f"Block {result.height} already stored, nothing written")
    elif result.status is IngestStatus.REJECTED:
        logger.warning(f"Block {result.height} rejected: {result.reason}")
    else:
        logger.error(f"Block {result.height} outcome unknown: {result.reason}")


def _encode(block: Block, executor: Executor) -> Statement | IngestResult:
    try:
        return build_statement(block, executor.dialect_name)
    except EncodingError as e:
        e.height = block.height
        return IngestResult(block.height, IngestStatus.REJECTED, error=e)


def submit(block: Block, executor: Executor) -> IngestResult:
    """Write one block atomically and report what happened

    Never raises for constraint or transport problems; those come back as
    REJECTED and FAILED results.
    """
    statement = _encode(block, executor)
    if isinstance(statement, IngestResult):
        _log_result(statement)
        record_result(statement)
        return statement

    start_time = time.time()
    outcome = executor.execute(statement)
    result = classify(statement, outcome)
    record_result(result, time.time() - start_time)
    _log_result(result)
    return result


class BlockIngestor:
    """
    Async front end over an executor.

    The executor call runs in a worker thread under ``timeout``. FAILED outcomes
    (and timeouts) are retried with backoff; re-running a statement is safe
    because the block insert is guarded by its height.
    """

    def __init__(
        self,
        executor: Executor,
        timeout: float = 60,
        retries: int = 5,
        base_delay: float = 2,
        concurrency: int = 4,
    ) -> None:
        self.executor = executor
        self.timeout = timeout
        self.concurrency = concurrency
        self._execute = async_retry(
            retries=retries,
            base_delay=base_delay,
            exponential_backoff=True,
            jitter=True,
            retry_on=(ExecutionFailure,),
        )(self._execute_once)

    async def _execute_once(self, statement: Statement) -> IngestResult:
        start_time = time.time()
        try:
            outcome = await asyncio.wait_for(
                asyncio.to_thread(self.executor.execute, statement),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            # The worker thread may still finish; the block either fully lands or not at all
            outcome = Failed(ExecutionFailure(
                f"Statement did not finish within {self.timeout} seconds",
                height=statement.height,
            ))

        result = classify(statement, outcome)
        record_result(result, time.time() - start_time)
        if result.retryable:
            UNKNOWN_OUTCOMES.inc()
            raise result.error
        return result

    async def ingest(self, block: Block) -> IngestResult:
        statement = _encode(block, self.executor)
        if isinstance(statement, IngestResult):
            record_result(statement)
            _log_result(statement)
            return statement

        try:
            result = await self._execute(statement)
        except ExecutionFailure as e:
            result = IngestResult(block.height, IngestStatus.FAILED, error=e)
        _log_result(result)
        return result

    async def ingest_many(self, blocks: Iterable[Block]) -> List[IngestResult]:
        """Ingest blocks in parallel, at most ``concurrency`` at a time. Results keep input order."""
        semaphore = asyncio.Semaphore(self.concurrency)

        async def bounded(block: Block) -> IngestResult:
            async with semaphore:
                return await self.ingest(block)

        return await asyncio.gather(*(bounded(block) for block in blocks))
