from sqlalchemy import (
    ARRAY,
    JSON,
    BigInteger,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKeyConstraint,
    Integer,
    LargeBinary,
    Numeric,
    SmallInteger,
    String,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

# Topics are a bytea[] on Postgres. SQLite has no arrays, so there they are a JSON list of hex strings.
TopicsType = ARRAY(LargeBinary).with_variant(JSON(), "sqlite")

# Quantities are NUMERIC on Postgres. SQLite would coerce wide values to REAL, so there they are
# canonical digit strings (no leading zeros) and compare by length first.
DecimalType = Numeric().with_variant(String(), "sqlite")


class BlockRecord(Base):
    __tablename__ = 'block'
    __table_args__ = (
        CheckConstraint('gas_used <= gas_limit', name='block_check').ddl_if(dialect='postgresql'),
        CheckConstraint(
            'length(gas_used) < length(gas_limit) '
            'OR (length(gas_used) = length(gas_limit) AND gas_used <= gas_limit)',
            name='block_check',
        ).ddl_if(dialect='sqlite'),
    )

    height = Column(BigInteger, primary_key=True, autoincrement=False)
    hash = Column(LargeBinary, nullable=False)
    parent_hash = Column(LargeBinary, nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    gas_limit = Column(DecimalType, nullable=False)
    gas_used = Column(DecimalType, nullable=False)
    sequence = Column(BigInteger, nullable=False, index=True)
    transactions = relationship(
        "TransactionRecord",
        back_populates="block",
        order_by="TransactionRecord.index",
    )


class TransactionRecord(Base):
    __tablename__ = 'transaction'
    __table_args__ = (
        ForeignKeyConstraint(['block_height'], ['block.height'], ondelete='CASCADE'),
        CheckConstraint("from_address <> ''", name='transaction_from_check'),
    )

    block_height = Column(BigInteger, primary_key=True, autoincrement=False)
    index = Column(Integer, primary_key=True, autoincrement=False)
    hash = Column(LargeBinary, nullable=False)
    from_address = Column(String(42), nullable=False)
    to_address = Column(String(42), nullable=True)
    value = Column(DecimalType, nullable=False)
    gas_used = Column(DecimalType, nullable=False)
    input = Column(LargeBinary, nullable=False)
    status = Column(SmallInteger, nullable=False)
    block = relationship("BlockRecord", back_populates="transactions")
    events = relationship(
        "EventRecord",
        back_populates="transaction",
        order_by="EventRecord.index",
    )


class EventRecord(Base):
    __tablename__ = 'event'
    __table_args__ = (
        ForeignKeyConstraint(
            ['block_height', 'transaction_index'],
            ['transaction.block_height', 'transaction.index'],
            ondelete='CASCADE',
        ),
        CheckConstraint(
            'cardinality(topics) <= 4', name='event_topics_check'
        ).ddl_if(dialect='postgresql'),
        CheckConstraint(
            'json_array_length(topics) <= 4', name='event_topics_json_check'
        ).ddl_if(dialect='sqlite'),
    )

    block_height = Column(BigInteger, primary_key=True, autoincrement=False)
    transaction_index = Column(Integer, primary_key=True, autoincrement=False)
    index = Column(Integer, primary_key=True, autoincrement=False)
    address = Column(String(42), nullable=False)
    topics = Column(TopicsType, nullable=False)
    data = Column(LargeBinary, nullable=False)
    transaction = relationship("TransactionRecord", back_populates="events")


TABLES = {
    'block': BlockRecord,
    'transaction': TransactionRecord,
    'event': EventRecord,
}
