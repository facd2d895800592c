from typing import Optional, Tuple
from pydantic import BaseModel

from .logs import EventLog


class Transaction(BaseModel):
    model_config = {
        "arbitrary_types_allowed": False,
        "frozen": True,
    }

    index: int
    hash: bytes
    from_address: str
    to_address: Optional[str] = None  # contract creation
    value: str  # decimal string, wei
    gas_used: str  # decimal string
    input: bytes = b""
    status: int
    logs: Tuple[EventLog, ...] = ()
