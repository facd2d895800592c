from datetime import datetime
from typing import Tuple
from pydantic import BaseModel

from .transactions import Transaction


class Block(BaseModel):
    model_config = {
        "arbitrary_types_allowed": False,
        "frozen": True,
    }

    height: int
    hash: bytes
    parent_hash: bytes
    timestamp: datetime
    gas_limit: str  # decimal string, never narrowed to a fixed-width int
    gas_used: str
    sequence: int
    transactions: Tuple[Transaction, ...] = ()

    @property
    def key(self) -> int:
        """Ingestion identity. Two blocks with the same height are the same block,
        whatever their other fields say."""
        return self.height

    @property
    def log_count(self) -> int:
        return sum(len(tx.logs) for tx in self.transactions)
