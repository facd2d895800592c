from sqlalchemy import func
from sqlalchemy.orm import Session

from .schema import TABLES, BlockRecord, EventRecord, TransactionRecord


def count_rows(session: Session, table: str) -> int:
    """Number of rows in one of the block, transaction or event tables."""
    model = TABLES[table]
    return session.query(func.count()).select_from(model).scalar()


def count_all(session: Session) -> dict[str, int]:
    return {table: count_rows(session, table) for table in TABLES}


class BlockRepository:
    @staticmethod
    def get_block(session: Session, height: int) -> BlockRecord | None:
        return session.get(BlockRecord, height)

    @staticmethod
    def get_latest_block(session: Session) -> BlockRecord | None:
        """
        Get the block with the highest ingestion sequence.
        """
        return session.query(BlockRecord).order_by(BlockRecord.sequence.desc()).first()


class TransactionRepository:
    @staticmethod
    def get_transactions(session: Session, height: int) -> list[TransactionRecord]:
        return (
            session.query(TransactionRecord)
            .filter(TransactionRecord.block_height == height)
            .order_by(TransactionRecord.index)
            .all()
        )


class EventRepository:
    @staticmethod
    def get_events(session: Session, height: int, transaction_index: int | None = None) -> list[EventRecord]:
        query = session.query(EventRecord).filter(EventRecord.block_height == height)
        if transaction_index is not None:
            query = query.filter(EventRecord.transaction_index == transaction_index)
        return query.order_by(EventRecord.transaction_index, EventRecord.index).all()
