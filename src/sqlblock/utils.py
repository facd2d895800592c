import asyncio
import random
import sys
from datetime import datetime, timezone
from functools import wraps
from pathlib import Path
from typing import Tuple, Type, Union

from dynaconf import Dynaconf, Validator
from hexbytes import HexBytes
from loguru import logger


def hex_to_bytes(value: Union[str, bytes, None]) -> bytes:
    """Convert a hex string (with or without '0x') to raw bytes. None becomes b''."""
    if value is None:
        return b""
    return bytes(HexBytes(value))


def quantity_to_str(value: Union[str, int]) -> str:
    """Normalize a JSON-RPC quantity to a decimal string without going through a fixed-width int

    Accepts ints, decimal strings and '0x' prefixed hex strings.
    """
    if isinstance(value, bool):
        raise TypeError("Expected quantity, got bool")
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str) and value[:2].lower() == "0x":
        return str(int(value, 16))
    return value


def quantity_to_int(value: Union[str, int]) -> int:
    return int(quantity_to_str(value))


def unix_to_utc(timestamp: Union[int, str]) -> datetime:
    """Convert a Unix timestamp (int or hex quantity) to an aware UTC datetime"""
    return datetime.fromtimestamp(quantity_to_int(timestamp), timezone.utc)


def setup_logging(level: str = "INFO", log_file: str | None = None) -> None:
    """Configure loguru sinks: stderr always, a rotating file when given"""
    logger.remove()
    logger.add(sys.stderr, level=level)
    if log_file:
        logger.add(log_file, level=level, rotation="100 MB", retention="10 days")


def load_config(config_path: Union[str, Path]) -> Dynaconf:
    """Load and validate ingestion configuration

    Values can be overridden from the environment with the SQLBLOCK_ prefix,
    e.g. SQLBLOCK_DATABASE__URL.

    Params:
        config_path (str | Path): Path to the YAML config file

    Returns:
        Dynaconf: Validated configuration object
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    settings = Dynaconf(
        settings_files=[str(config_path)],
        envvar_prefix="SQLBLOCK",
        validators=[
            Validator('database.url', must_exist=True, is_type_of=str,
                      condition=lambda x: x == x.strip() and len(x) > 0,
                      messages={"condition": "Database URL must be non-empty with no surrounding spaces"}
            ),
            Validator('database.create_schema', default=True, is_type_of=bool),
            Validator('database.statement_timeout_ms', default=None),
            Validator('database.pool_size', default=5, is_type_of=int, gte=1),
            Validator('ingest.timeout', default=60, gt=0),
            Validator('ingest.retries', default=5, is_type_of=int, gte=1),
            Validator('ingest.base_delay', default=2, gte=0),
            Validator('ingest.concurrency', default=4, is_type_of=int, gte=1),
            Validator('logging.level', default="INFO", is_type_of=str,
                      is_in=["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"]),
            Validator('logging.file', default=None),
            Validator('metrics.enabled', default=False, is_type_of=bool),
            Validator('metrics.port', default=8000, is_type_of=int),
            Validator('metrics.addr', default="0.0.0.0", is_type_of=str),
        ]
    )
    # Validate all settings at once
    settings.validators.validate()

    return settings


# Decorator for implementing retry logic with exponential backoff for async functions
def async_retry(
    retries: int = 3,
    base_delay: float = 1,
    exponential_backoff: bool = True,
    jitter: bool = True,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
):
    """
    Decorator for implementing retry logic with exponential backoff for async functions.

    :param retries: int, number of attempts in total
    :param base_delay: float, base delay between retries in seconds
    :param exponential_backoff: bool, whether to use exponential backoff
    :param jitter: bool, whether to add random jitter to the delay
    :param retry_on: tuple, exception types that trigger a retry; others propagate at once
    :return: function, decorated function
    """
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            for attempt in range(1, retries + 1):
                try:
                    return await func(*args, **kwargs)
                except retry_on as e:
                    if attempt == retries:
                        logger.error(
                            f"All retry attempts failed for {func.__name__}: {str(e)}"
                        )
                        raise

                    delay = (
                        base_delay * (2 ** (attempt - 1))
                        if exponential_backoff
                        else base_delay
                    )
                    if jitter:
                        delay *= random.uniform(1.0, 1.5)

                    logger.warning(
                        f"Attempt {attempt} failed for {func.__name__}. Retrying in {delay:.2f} seconds. Error: {str(e)}"
                    )
                    await asyncio.sleep(delay)

        return wrapper
    return decorator
