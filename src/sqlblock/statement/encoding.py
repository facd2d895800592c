"""
Literal rendering for the statement builder.

Every value that ends up in a statement goes through ``SQLRenderer.render``.
Nothing is ever passed as a bind parameter: the statement is a finished piece
of SQL text, so escaping has to be right here and nowhere else.
"""
import json
import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Sequence

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Dialect

from sqlblock.errors import EncodingError


class ColumnKind(Enum):
    INTEGER = "integer"
    DECIMAL = "decimal"
    TEXT = "text"
    BLOB = "blob"
    TIMESTAMP = "timestamp"
    TOPICS = "topics"


_DECIMAL_RE = re.compile(r"[0-9]+")


class SQLRenderer:
    """Renders identifiers and literals for one SQL dialect"""

    name = "generic"

    # True when the engine accepts INSERT ... RETURNING inside a WITH clause,
    # which lets a whole block be written by one statement.
    supports_chained_inserts = False

    def __init__(self, dialect: Dialect):
        self.preparer = dialect.identifier_preparer

    def identifier(self, name: str) -> str:
        return self.preparer.quote_identifier(name)

    def column(self, table: str, name: str) -> str:
        return f"{self.identifier(table)}.{self.identifier(name)}"

    def render(self, value: Any, kind: ColumnKind) -> str:
        """Render one scalar as a SQL literal of the given column kind

        Raises:
            EncodingError: If the value cannot be represented for this kind
        """
        if value is None:
            return "NULL"
        if kind is ColumnKind.INTEGER:
            return self._integer(value)
        elif kind is ColumnKind.DECIMAL:
            return self._decimal(value)
        elif kind is ColumnKind.TEXT:
            return self._text(value)
        elif kind is ColumnKind.BLOB:
            return self._blob(self._bytes(value))
        elif kind is ColumnKind.TIMESTAMP:
            return self._timestamp(value)
        elif kind is ColumnKind.TOPICS:
            return self._topics([self._bytes(topic) for topic in self._sequence(value)])
        raise EncodingError(f"Unknown column kind: {kind}")

    def _integer(self, value: Any) -> str:
        # bool is an int subclass but never a valid height/index/status
        if isinstance(value, bool) or not isinstance(value, int):
            raise EncodingError(f"Expected integer, got {type(value).__name__}")
        return str(value)

    def _decimal(self, value: Any) -> str:
        if isinstance(value, int) and not isinstance(value, bool):
            value = str(value)
        if not isinstance(value, str) or not _DECIMAL_RE.fullmatch(value):
            raise EncodingError(f"Expected unsigned decimal string, got {value!r:.80}")
        return self._numeric(value.lstrip("0") or "0")

    def _numeric(self, digits: str) -> str:
        return f"CAST({self.quote(digits)} AS NUMERIC)"

    def _text(self, value: Any) -> str:
        if not isinstance(value, str):
            raise EncodingError(f"Expected string, got {type(value).__name__}")
        return self.quote(value)

    def quote(self, value: str) -> str:
        """Single-quote a string, doubling embedded quotes"""
        if "\x00" in value:
            raise EncodingError("NUL character cannot be stored in a text column")
        try:
            value.encode("utf-8")
        except UnicodeEncodeError as e:
            raise EncodingError(f"String is not encodable as UTF-8: {e.reason}") from e
        return "'" + value.replace("'", "''") + "'"

    @staticmethod
    def _bytes(value: Any) -> bytes:
        if isinstance(value, (bytes, bytearray, memoryview)):
            return bytes(value)
        raise EncodingError(f"Expected bytes, got {type(value).__name__}")

    @staticmethod
    def _sequence(value: Any) -> Sequence:
        if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple)):
            raise EncodingError(f"Expected a sequence of topics, got {type(value).__name__}")
        return value

    @staticmethod
    def _utc(value: Any) -> datetime:
        if not isinstance(value, datetime):
            raise EncodingError(f"Expected datetime, got {type(value).__name__}")
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def _blob(self, value: bytes) -> str:
        raise NotImplementedError

    def _timestamp(self, value: Any) -> str:
        raise NotImplementedError

    def _topics(self, topics: list[bytes]) -> str:
        raise NotImplementedError


class PostgresRenderer(SQLRenderer):
    name = "postgresql"
    supports_chained_inserts = True

    def _blob(self, value: bytes) -> str:
        # decode() does not depend on standard_conforming_strings
        return f"decode('{value.hex()}', 'hex')"

    def _timestamp(self, value: Any) -> str:
        ts = self._utc(value).strftime("%Y-%m-%d %H:%M:%S.%f+00:00")
        return f"CAST('{ts}' AS TIMESTAMP WITH TIME ZONE)"

    def _topics(self, topics: list[bytes]) -> str:
        items = ", ".join(self._blob(topic) for topic in topics)
        return f"CAST(ARRAY[{items}] AS BYTEA[])"


class SQLiteRenderer(SQLRenderer):
    name = "sqlite"

    def _numeric(self, digits: str) -> str:
        # Stored as text; a NUMERIC cast would turn anything past 64 bits into a REAL
        return self.quote(digits)

    def _blob(self, value: bytes) -> str:
        return f"X'{value.hex()}'"

    def _timestamp(self, value: Any) -> str:
        # Same layout SQLAlchemy's SQLite DateTime type reads back
        return self.quote(self._utc(value).strftime("%Y-%m-%d %H:%M:%S.%f"))

    def _topics(self, topics: list[bytes]) -> str:
        return self.quote(json.dumps(["0x" + topic.hex() for topic in topics]))


RENDERERS = {
    "postgresql": lambda: PostgresRenderer(postgresql.dialect()),
    "sqlite": lambda: SQLiteRenderer(sqlite.dialect()),
}


def get_renderer(dialect_name: str) -> SQLRenderer:
    try:
        return RENDERERS[dialect_name]()
    except KeyError:
        raise EncodingError(
            f"Unsupported dialect: {dialect_name}. Supported dialects: {sorted(RENDERERS)}"
        ) from None
