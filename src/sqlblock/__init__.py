from .classifier import IngestResult, IngestStatus, classify
from .data_types import Block, EventLog, Transaction
from .errors import ConstraintViolation, EncodingError, ExecutionFailure, IngestionError
from .execution import Committed, Executor, Failed, Rejected, SQLAlchemyExecutor
from .ingestor import BlockIngestor, submit
from .statement import RowCounts, Statement, build_statement

__all__ = [
    "Block",
    "BlockIngestor",
    "Committed",
    "ConstraintViolation",
    "EncodingError",
    "EventLog",
    "ExecutionFailure",
    "Executor",
    "Failed",
    "IngestResult",
    "IngestStatus",
    "IngestionError",
    "Rejected",
    "RowCounts",
    "SQLAlchemyExecutor",
    "Statement",
    "Transaction",
    "build_statement",
    "classify",
    "submit",
]
