"""SQLAlchemy ORM models backing the ledger key-value state"""

from sqlalchemy import Column, Integer, LargeBinary, String, DateTime
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class LedgerState(Base):
    """One ledger key with its current value and optimistic-lock version"""

    __tablename__ = "ledger_state"

    # Range scans need byte-order comparison: SQLite compares BINARY, Postgres needs the "C" collation
    key = Column(String(512).with_variant(String(512, collation="C"), "postgresql"), primary_key=True)
    value = Column(LargeBinary, nullable=False)
    version = Column(Integer, nullable=False, default=1)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
