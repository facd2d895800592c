from .builder import (
    BLOCK_TABLE,
    EVENT_TABLE,
    TRANSACTION_TABLE,
    InsertClause,
    RowCounts,
    Statement,
    StatementBuilder,
    build_statement,
)
from .encoding import ColumnKind, SQLRenderer, get_renderer

__all__ = [
    "BLOCK_TABLE",
    "EVENT_TABLE",
    "TRANSACTION_TABLE",
    "ColumnKind",
    "InsertClause",
    "RowCounts",
    "SQLRenderer",
    "Statement",
    "StatementBuilder",
    "build_statement",
    "get_renderer",
]
