import time
from datetime import datetime, timezone
from pathlib import Path

import pgserver
import pytest

from sqlblock.data_types import Block
from sqlblock.database import create_db_engine, init_db, session_factory
from sqlblock.db.repository import count_all
from sqlblock.db.schema import Base
from sqlblock.execution import Committed, SQLAlchemyExecutor
from sqlblock.parsers import load_block

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture(scope="session")
def postgres_server(tmp_path_factory):
    """Throwaway PostgreSQL cluster shared by the whole run"""
    with pgserver.get_server(tmp_path_factory.mktemp("pgdata"), cleanup_mode="stop") as server:
        yield server


@pytest.fixture
def sqlite_engine(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'sqlblock.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def postgresql_engine(postgres_server):
    engine = create_db_engine(postgres_server.get_uri(), pool_size=8)
    Base.metadata.drop_all(bind=engine)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def engine(sqlite_engine):
    return sqlite_engine


@pytest.fixture
def executor(engine):
    return SQLAlchemyExecutor(engine)


@pytest.fixture
def session(engine):
    with session_factory(engine)() as session:
        yield session


@pytest.fixture
def counts(engine):
    """Fresh row counts per table, read through a new session every call"""
    def _counts():
        with session_factory(engine)() as session:
            return count_all(session)
    return _counts


@pytest.fixture
def block() -> Block:
    return load_block(FIXTURES / "60034225.json")


def replace_transaction(block: Block, position: int, **changes) -> Block:
    transactions = list(block.transactions)
    transactions[position] = transactions[position].model_copy(update=changes)
    return block.model_copy(update={"transactions": tuple(transactions)})


def replace_log(block: Block, tx_position: int, log_position: int, **changes) -> Block:
    logs = list(block.transactions[tx_position].logs)
    logs[log_position] = logs[log_position].model_copy(update=changes)
    return replace_transaction(block, tx_position, logs=tuple(logs))


def topic_bytes(topics) -> list:
    """Stored topics as bytes, from either a bytea[] or a JSON list of 0x strings"""
    return [bytes.fromhex(topic[2:]) if isinstance(topic, str) else bytes(topic) for topic in topics]


def as_utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


class FakeExecutor:
    """Executor double that replays scripted outcomes. None commits the full statement."""

    def __init__(self, outcomes=None, dialect_name="sqlite", delay=0.0):
        self.outcomes = list(outcomes or [None])
        self._dialect_name = dialect_name
        self.delay = delay
        self.statements = []

    @property
    def dialect_name(self):
        return self._dialect_name

    def execute(self, statement):
        self.statements.append(statement)
        if self.delay:
            time.sleep(self.delay)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if outcome is None:
            return Committed(statement.expected)
        return outcome
