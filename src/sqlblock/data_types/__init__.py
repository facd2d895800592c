from .blocks import Block
from .logs import EventLog
from .transactions import Transaction

__all__ = ["Block", "EventLog", "Transaction"]
