from dataclasses import dataclass
from typing import Optional, Protocol, Union

from loguru import logger
from sqlalchemy import exc
from sqlalchemy.engine import Connection, Engine

from sqlblock.errors import ConstraintViolation, ExecutionFailure
from sqlblock.statement import InsertClause, RowCounts, Statement


@dataclass(frozen=True)
class Committed:
    """The unit committed. Zero rows means the height already existed."""
    rows: RowCounts


@dataclass(frozen=True)
class Rejected:
    """The engine refused the unit and rolled all of it back"""
    error: ConstraintViolation


@dataclass(frozen=True)
class Failed:
    """The attempt did not reach a known end state; safe to retry"""
    error: ExecutionFailure


Outcome = Union[Committed, Rejected, Failed]


class Executor(Protocol):
    """Anything that can run a built statement against a storage engine"""

    @property
    def dialect_name(self) -> str:
        ...

    def execute(self, statement: Statement) -> Outcome:
        ...


class SQLAlchemyExecutor:
    """
    Runs statements on a SQLAlchemy engine.

    Each call checks a connection out of the engine's pool, runs the statement in
    one transaction and returns the connection. Constraint errors become
    ``Rejected``, connectivity errors become ``Failed``; anything else is a bug
    in the statement and is raised.
    """

    def __init__(self, engine: Engine, statement_timeout_ms: Optional[int] = None):
        self.engine = engine
        self.statement_timeout_ms = statement_timeout_ms

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    def execute(self, statement: Statement) -> Outcome:
        try:
            with self.engine.begin() as conn:
                # The SQL is fully rendered; keep the driver from reading % as a placeholder
                conn = conn.execution_options(no_parameters=True)
                if statement.is_single_statement:
                    rows = self._run_single(conn, statement)
                else:
                    rows = self._run_clause(conn, statement.root)
        except (exc.IntegrityError, exc.DataError) as e:
            return Rejected(ConstraintViolation(str(e.orig), height=statement.height))
        except (exc.OperationalError, exc.InterfaceError, exc.TimeoutError) as e:
            return Failed(ExecutionFailure(f"{type(e).__name__}: {e}", height=statement.height))
        except exc.DBAPIError as e:
            if e.connection_invalidated:
                return Failed(ExecutionFailure(f"Connection lost: {e}", height=statement.height))
            raise
        return Committed(rows)

    def _run_single(self, conn: Connection, statement: Statement) -> RowCounts:
        if self.statement_timeout_ms and self.dialect_name == "postgresql":
            conn.exec_driver_sql(f"SET LOCAL statement_timeout = {int(self.statement_timeout_ms)}")
        blocks, transactions, events = conn.exec_driver_sql(statement.text).one()
        return RowCounts(blocks=blocks, transactions=transactions, events=events)

    def _run_clause(self, conn: Connection, clause: InsertClause) -> RowCounts:
        result = conn.exec_driver_sql(clause.sql)
        if result.rowcount == 0:
            logger.debug(f"{clause.table} insert {clause.alias} skipped, not running {len(clause.children)} children")
            return RowCounts()
        rows = RowCounts.for_table(clause.table, result.rowcount)
        for child in clause.children:
            rows += self._run_clause(conn, child)
        return rows
