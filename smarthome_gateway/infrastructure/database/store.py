"""SQLAlchemy-backed ledger store"""

from typing import Iterator, List, Optional

from sqlalchemy import insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from smarthome_gateway.domain.exceptions import StoreConflictError, StoreError
from smarthome_gateway.infrastructure.database.models import LedgerState
from smarthome_gateway.infrastructure.ledger.base import LedgerStore, PendingWrite, StateEntry


class SqlLedgerStore(LedgerStore):
    """
    Ledger state stored as rows of (key, value, version).

    Writes are flushed into the session's open transaction and only become
    visible to other sessions on commit(). Version checks are conditional
    UPDATEs, so a row changed by another transaction after it was read
    matches zero rows and raises StoreConflictError.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_entry(self, key: str) -> Optional[StateEntry]:
        try:
            row = self.db.execute(
                select(LedgerState.key, LedgerState.value, LedgerState.version).where(LedgerState.key == key)
            ).first()
        except SQLAlchemyError as e:
            raise StoreError(f"Ledger read failed for {key!r}: {e}") from e
        if row is None:
            return None
        return StateEntry(key=row.key, value=bytes(row.value), version=row.version)

    def range_scan(self, start_key: str, end_key: str, page_size: int = 100) -> Iterator[StateEntry]:
        if page_size <= 0:
            raise ValueError(f"page_size must be positive, got {page_size}")
        cursor: Optional[str] = None
        while True:
            lower = LedgerState.key > cursor if cursor is not None else LedgerState.key >= start_key
            query = (
                select(LedgerState.key, LedgerState.value, LedgerState.version)
                .where(lower, LedgerState.key < end_key)
                .order_by(LedgerState.key)
                .limit(page_size)
            )
            try:
                rows = self.db.execute(query).all()
            except SQLAlchemyError as e:
                raise StoreError(f"Ledger range scan failed after {cursor or start_key!r}: {e}") from e

            for row in rows:
                yield StateEntry(key=row.key, value=bytes(row.value), version=row.version)

            if len(rows) < page_size:
                return
            cursor = rows[-1].key

    def write_batch(self, writes: List[PendingWrite]) -> None:
        """
        Apply writes inside the current transaction.

        A conflict part-way through leaves earlier rows of the batch written in
        the open transaction; callers must rollback() on StoreConflictError.
        """
        try:
            for write in writes:
                self._apply(write)
            self.db.flush()
        except StoreConflictError:
            raise
        except SQLAlchemyError as e:
            raise StoreError(f"Ledger write failed: {e}") from e

    def _apply(self, write: PendingWrite) -> None:
        if write.expected_version == 0:
            try:
                self.db.execute(insert(LedgerState).values(key=write.key, value=write.value, version=1))
            except IntegrityError as e:
                raise StoreConflictError(f"key {write.key!r} already exists") from e
            return

        stmt = update(LedgerState).where(LedgerState.key == write.key)
        if write.expected_version is not None:
            stmt = stmt.where(LedgerState.version == write.expected_version)
        result = self.db.execute(stmt.values(value=write.value, version=LedgerState.version + 1))

        if result.rowcount == 0:
            if write.expected_version is not None:
                raise StoreConflictError(f"key {write.key!r} is no longer at version {write.expected_version}")
            self.db.execute(insert(LedgerState).values(key=write.key, value=write.value, version=1))

    def commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError(f"Ledger commit failed: {e}") from e

    def rollback(self) -> None:
        self.db.rollback()
