from typing import Tuple
from pydantic import BaseModel


class EventLog(BaseModel):
    model_config = {
        "arbitrary_types_allowed": False,
        "frozen": True,
    }

    index: int
    address: str
    topics: Tuple[bytes, ...] = ()  # at most 4, enforced by the event table
    data: bytes = b""
