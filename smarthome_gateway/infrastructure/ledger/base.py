"""Key-value ledger store contract consumed by the completion workflow"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterator, List, Optional


@dataclass(frozen=True)
class StateEntry:
    """Stored value plus the version it was read at"""

    key: str
    value: bytes
    version: int


@dataclass(frozen=True)
class PendingWrite:
    """
    A staged write.

    expected_version:
        None -> unconditional write
        0    -> key must not exist yet
        n    -> key must still be at version n
    """

    key: str
    value: bytes
    expected_version: Optional[int] = None


class LedgerStore(ABC):
    """
    Linearizable key-value state with ordered range scans.

    Writes become visible to other requests only after commit(). A batch that
    fails its version checks raises StoreConflictError and applies nothing.
    """

    @abstractmethod
    def get_entry(self, key: str) -> Optional[StateEntry]:
        """Point read; None when the key was never written"""

    def get(self, key: str) -> bytes:
        """Point read; a missing key reads as empty bytes, not an error"""
        entry = self.get_entry(key)
        return entry.value if entry else b""

    def put(self, key: str, value: bytes) -> None:
        self.write_batch([PendingWrite(key=key, value=value)])

    @abstractmethod
    def range_scan(self, start_key: str, end_key: str, page_size: int = 100) -> Iterator[StateEntry]:
        """Lazy ascending scan of keys in [start_key, end_key), fetched page by page"""

    @abstractmethod
    def write_batch(self, writes: List[PendingWrite]) -> None:
        """Apply every write or none of them"""

    @abstractmethod
    def commit(self) -> None:
        pass

    @abstractmethod
    def rollback(self) -> None:
        pass
