import json
from pathlib import Path
from typing import Union

from sqlblock.data_types import Block, EventLog, Transaction
from .blocks import BlockParser
from .logs import LogParser
from .transactions import TransactionParser


def parse_block(raw_block: dict) -> Block:
    """Decode a JSON-RPC style block dict, transactions and their logs included

    Each transaction carries its own logs under ``logs`` (as in a receipt).
    """
    transactions = []
    for raw_tx in raw_block.get('transactions', []):
        logs = [EventLog(**LogParser.parse_raw(raw_log)) for raw_log in raw_tx.get('logs', [])]
        transactions.append(Transaction(**TransactionParser.parse_raw(raw_tx), logs=logs))

    return Block(**BlockParser.parse_raw(raw_block), transactions=transactions)


def load_block(path: Union[str, Path]) -> Block:
    """Read and decode a block from a JSON file"""
    with Path(path).open('r') as f:
        return parse_block(json.load(f))


__all__ = ["BlockParser", "LogParser", "TransactionParser", "load_block", "parse_block"]
