from dataclasses import dataclass
from enum import Enum
from typing import Optional

from loguru import logger

from sqlblock.errors import IngestionError
from sqlblock.execution import Committed, Failed, Outcome, Rejected
from sqlblock.statement import RowCounts, Statement


class IngestStatus(Enum):
    INGESTED = "ingested"
    DUPLICATE = "duplicate"
    REJECTED = "rejected"
    FAILED = "failed"


@dataclass(frozen=True)
class IngestResult:
    height: int
    status: IngestStatus
    rows: RowCounts = RowCounts()
    error: Optional[IngestionError] = None

    @property
    def ok(self) -> bool:
        """Fresh inserts and duplicates are both successful ingestions"""
        return self.status in (IngestStatus.INGESTED, IngestStatus.DUPLICATE)

    @property
    def retryable(self) -> bool:
        return self.status is IngestStatus.FAILED

    @property
    def reason(self) -> Optional[str]:
        return str(self.error) if self.error is not None else None

    def raise_for_status(self) -> "IngestResult":
        if self.error is not None and not self.ok:
            raise self.error
        return self


def classify(statement: Statement, outcome: Outcome) -> IngestResult:
    """Turn an executor outcome into what happened to the block

    A commit that wrote no block row is a duplicate: the height was already
    stored and the conflict guard skipped the whole graph.
    """
    if isinstance(outcome, Committed):
        rows = outcome.rows
        if rows.blocks == 0:
            if rows.total:
                # Children are guarded by the block insert, so this means the statement is broken
                logger.error(f"Block {statement.height} was skipped but {rows} child rows were written")
            return IngestResult(statement.height, IngestStatus.DUPLICATE, rows)
        if rows != statement.expected:
            logger.warning(f"Block {statement.height} wrote {rows}, expected {statement.expected}")
        return IngestResult(statement.height, IngestStatus.INGESTED, rows)
    elif isinstance(outcome, Rejected):
        return IngestResult(statement.height, IngestStatus.REJECTED, error=outcome.error)
    elif isinstance(outcome, Failed):
        return IngestResult(statement.height, IngestStatus.FAILED, error=outcome.error)
    raise TypeError(f"Unknown execution outcome: {outcome!r}")
