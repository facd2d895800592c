from dataclasses import dataclass, field
from operator import attrgetter
from typing import Any, Iterator, List, Optional, Tuple

from sqlblock.data_types import Block, EventLog, Transaction
from .encoding import ColumnKind, SQLRenderer, get_renderer

BLOCK_TABLE = "block"
TRANSACTION_TABLE = "transaction"
EVENT_TABLE = "event"

BLOCK_COLUMNS = (
    ("height", ColumnKind.INTEGER),
    ("hash", ColumnKind.BLOB),
    ("parent_hash", ColumnKind.BLOB),
    ("timestamp", ColumnKind.TIMESTAMP),
    ("gas_limit", ColumnKind.DECIMAL),
    ("gas_used", ColumnKind.DECIMAL),
    ("sequence", ColumnKind.INTEGER),
)

# The leading key columns are copied from the parent row, the rest come from the entity
TRANSACTION_KEYS = ("block_height",)
TRANSACTION_COLUMNS = (
    ("index", ColumnKind.INTEGER),
    ("hash", ColumnKind.BLOB),
    ("from_address", ColumnKind.TEXT),
    ("to_address", ColumnKind.TEXT),
    ("value", ColumnKind.DECIMAL),
    ("gas_used", ColumnKind.DECIMAL),
    ("input", ColumnKind.BLOB),
    ("status", ColumnKind.INTEGER),
)

EVENT_KEYS = ("block_height", "transaction_index")
EVENT_COLUMNS = (
    ("index", ColumnKind.INTEGER),
    ("address", ColumnKind.TEXT),
    ("topics", ColumnKind.TOPICS),
    ("data", ColumnKind.BLOB),
)


@dataclass(frozen=True)
class RowCounts:
    blocks: int = 0
    transactions: int = 0
    events: int = 0

    @classmethod
    def for_table(cls, table: str, rows: int) -> "RowCounts":
        if table == BLOCK_TABLE:
            return cls(blocks=rows)
        elif table == TRANSACTION_TABLE:
            return cls(transactions=rows)
        elif table == EVENT_TABLE:
            return cls(events=rows)
        raise ValueError(f"Unknown table {table}")

    def __add__(self, other: "RowCounts") -> "RowCounts":
        return RowCounts(
            blocks=self.blocks + other.blocks,
            transactions=self.transactions + other.transactions,
            events=self.events + other.events,
        )

    @property
    def total(self) -> int:
        return self.blocks + self.transactions + self.events


@dataclass(frozen=True)
class InsertClause:
    """One guarded row insert. Children only run if this clause inserted its row."""
    alias: str
    table: str
    sql: str
    children: Tuple["InsertClause", ...] = ()

    def walk(self) -> Iterator["InsertClause"]:
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass(frozen=True)
class Statement:
    """
    The unit of work for one block.

    When ``text`` is set the whole block is a single SQL statement and the
    clauses are only kept for inspection. Otherwise the executor has to run
    ``root`` and its children inside one transaction, skipping the children of
    any clause that inserted nothing.
    """
    height: int
    dialect: str
    root: InsertClause
    expected: RowCounts
    text: Optional[str] = field(default=None, repr=False)

    @property
    def is_single_statement(self) -> bool:
        return self.text is not None


class StatementBuilder:
    def __init__(self, renderer: SQLRenderer):
        self.r = renderer

    def build(self, block: Block) -> Statement:
        transactions = sorted(block.transactions, key=attrgetter("index"))

        tx_clauses = []
        for position, tx in enumerate(transactions):
            alias = f"t{position}"
            logs = sorted(tx.logs, key=attrgetter("index"))
            event_clauses = tuple(
                self._event_clause(block, tx, log, parent=alias, alias=f"e{position}_{n}")
                for n, log in enumerate(logs)
            )
            tx_clauses.append(self._transaction_clause(block, tx, alias, event_clauses))

        root = self._block_clause(block, tuple(tx_clauses))
        expected = RowCounts(
            blocks=1,
            transactions=len(transactions),
            events=block.log_count,
        )
        text = self._compose(root) if self.r.supports_chained_inserts else None
        return Statement(
            height=block.height,
            dialect=self.r.name,
            root=root,
            expected=expected,
            text=text,
        )

    def _values(self, entity: Any, columns) -> List[str]:
        return [self.r.render(getattr(entity, name), kind) for name, kind in columns]

    def _names(self, names) -> str:
        return ", ".join(self.r.identifier(name) for name in names)

    def _block_clause(self, block: Block, children: Tuple[InsertClause, ...]) -> InsertClause:
        names = [name for name, _ in BLOCK_COLUMNS]
        sql = (
            f"INSERT INTO {self.r.identifier(BLOCK_TABLE)} ({self._names(names)}) "
            f"VALUES ({', '.join(self._values(block, BLOCK_COLUMNS))}) "
            f"ON CONFLICT ({self.r.identifier('height')}) DO NOTHING"
        )
        if self.r.supports_chained_inserts:
            sql += f" RETURNING {self.r.identifier('height')}"
        return InsertClause(alias="b", table=BLOCK_TABLE, sql=sql, children=children)

    def _transaction_clause(
        self,
        block: Block,
        tx: Transaction,
        alias: str,
        children: Tuple[InsertClause, ...],
    ) -> InsertClause:
        names = list(TRANSACTION_KEYS) + [name for name, _ in TRANSACTION_COLUMNS]
        values = self._values(tx, TRANSACTION_COLUMNS)
        if self.r.supports_chained_inserts:
            # Selecting from the block CTE yields no row when the block was a duplicate
            sql = (
                f"INSERT INTO {self.r.identifier(TRANSACTION_TABLE)} ({self._names(names)}) "
                f"SELECT {self.r.column('b', 'height')}, {', '.join(values)} "
                f"FROM {self.r.identifier('b')} "
                f"RETURNING {self._names(('block_height', 'index'))}"
            )
        else:
            sql = (
                f"INSERT INTO {self.r.identifier(TRANSACTION_TABLE)} ({self._names(names)}) "
                f"VALUES ({self.r.render(block.height, ColumnKind.INTEGER)}, {', '.join(values)})"
            )
        return InsertClause(alias=alias, table=TRANSACTION_TABLE, sql=sql, children=children)

    def _event_clause(
        self,
        block: Block,
        tx: Transaction,
        log: EventLog,
        parent: str,
        alias: str,
    ) -> InsertClause:
        names = list(EVENT_KEYS) + [name for name, _ in EVENT_COLUMNS]
        values = self._values(log, EVENT_COLUMNS)
        if self.r.supports_chained_inserts:
            sql = (
                f"INSERT INTO {self.r.identifier(EVENT_TABLE)} ({self._names(names)}) "
                f"SELECT {self.r.column(parent, 'block_height')}, {self.r.column(parent, 'index')}, "
                f"{', '.join(values)} "
                f"FROM {self.r.identifier(parent)} "
                f"RETURNING {self.r.identifier('index')}"
            )
        else:
            keys = [
                self.r.render(block.height, ColumnKind.INTEGER),
                self.r.render(tx.index, ColumnKind.INTEGER),
            ]
            sql = (
                f"INSERT INTO {self.r.identifier(EVENT_TABLE)} ({self._names(names)}) "
                f"VALUES ({', '.join(keys + values)})"
            )
        return InsertClause(alias=alias, table=EVENT_TABLE, sql=sql)

    def _count(self, aliases: List[str]) -> str:
        if not aliases:
            return "0"
        return " + ".join(
            f"(SELECT count(*) FROM {self.r.identifier(alias)})" for alias in aliases
        )

    def _compose(self, root: InsertClause) -> str:
        """Chain every clause into one WITH statement that reports what it inserted"""
        clauses = list(root.walk())
        ctes = ",\n".join(f"{self.r.identifier(c.alias)} AS ({c.sql})" for c in clauses)

        by_table = {BLOCK_TABLE: [], TRANSACTION_TABLE: [], EVENT_TABLE: []}
        for clause in clauses:
            by_table[clause.table].append(clause.alias)

        return (
            f"WITH {ctes}\n"
            f"SELECT {self._count(by_table[BLOCK_TABLE])} AS {self.r.identifier('blocks')}, "
            f"{self._count(by_table[TRANSACTION_TABLE])} AS {self.r.identifier('transactions')}, "
            f"{self._count(by_table[EVENT_TABLE])} AS {self.r.identifier('events')}"
        )


def build_statement(block: Block, dialect: str) -> Statement:
    """Build the all-or-nothing unit of work that writes ``block`` for ``dialect``

    Args:
        block (Block): Decoded block with its transactions and logs
        dialect (str): SQLAlchemy dialect name of the target engine

    Returns:
        Statement: Opaque unit to hand to an executor

    Raises:
        EncodingError: If a field cannot be rendered or the dialect is unsupported
    """
    return StatementBuilder(get_renderer(dialect)).build(block)
