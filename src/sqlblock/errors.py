import re


class IngestionError(Exception):
    """Base class for everything that can go wrong while ingesting a block"""

    retryable = False

    def __init__(self, message: str, height: int | None = None):
        super().__init__(message)
        self.height = height


class EncodingError(IngestionError):
    """A field of the entity graph cannot be rendered into SQL"""


class ConstraintViolation(IngestionError):
    """The storage engine rejected the unit; nothing from the attempt was kept"""

    _CONSTRAINT_PATTERNS = (
        re.compile(r'constraint "([^"]+)"'),
        re.compile(r"CHECK constraint failed: (\w+)"),
        re.compile(r"UNIQUE constraint failed: ([\w.]+)"),
    )

    def __init__(self, message: str, height: int | None = None):
        super().__init__(message, height)
        self.constraint = self._find_constraint(message)

    @classmethod
    def _find_constraint(cls, message: str) -> str | None:
        for pattern in cls._CONSTRAINT_PATTERNS:
            match = pattern.search(message)
            if match:
                return match.group(1)
        return None


class ExecutionFailure(IngestionError):
    """Transport, timeout or connectivity error; persistence state is unknown"""

    retryable = True
