"""In-memory ledger store for local runs without a database"""

import bisect
import threading
from typing import Dict, Iterator, List, Optional, Tuple

from smarthome_gateway.domain.exceptions import StoreConflictError
from smarthome_gateway.infrastructure.ledger.base import LedgerStore, PendingWrite, StateEntry


class InMemoryLedger:
    """Committed state shared by every request: key -> (value, version), plus a sorted key index"""

    def __init__(self):
        self.state: Dict[str, Tuple[bytes, int]] = {}
        self.sorted_keys: List[str] = []
        self.lock = threading.RLock()


class InMemoryLedgerStore(LedgerStore):
    """
    Per-request view over an InMemoryLedger.

    Staged writes stay private to this store until commit(), which re-checks
    that every touched key is still at the version the writes were staged
    against.
    """

    def __init__(self, ledger: Optional[InMemoryLedger] = None):
        self.ledger = ledger or InMemoryLedger()
        # key -> (value, new_version, committed_version_when_first_staged)
        self._pending: Dict[str, Tuple[bytes, int, int]] = {}

    def _current(self, key: str) -> Optional[Tuple[bytes, int]]:
        if key in self._pending:
            value, version, _ = self._pending[key]
            return value, version
        return self.ledger.state.get(key)

    def get_entry(self, key: str) -> Optional[StateEntry]:
        with self.ledger.lock:
            current = self._current(key)
        if current is None:
            return None
        return StateEntry(key=key, value=current[0], version=current[1])

    def _keys_in_range(self, lo_key: str, inclusive: bool, end_key: str, limit: int) -> List[str]:
        committed = self.ledger.sorted_keys
        lo = bisect.bisect_left(committed, lo_key) if inclusive else bisect.bisect_right(committed, lo_key)
        hi = bisect.bisect_left(committed, end_key)
        candidates = set(committed[lo:min(hi, lo + limit)])
        candidates.update(
            k for k in self._pending
            if (k >= lo_key if inclusive else k > lo_key) and k < end_key
        )
        return sorted(candidates)[:limit]

    def range_scan(self, start_key: str, end_key: str, page_size: int = 100) -> Iterator[StateEntry]:
        if page_size <= 0:
            raise ValueError(f"page_size must be positive, got {page_size}")
        cursor, inclusive = start_key, True
        while True:
            with self.ledger.lock:
                page = self._keys_in_range(cursor, inclusive, end_key, page_size)
                entries = []
                for key in page:
                    value, version = self._current(key)
                    entries.append(StateEntry(key=key, value=value, version=version))
            yield from entries
            if len(page) < page_size:
                return
            cursor, inclusive = page[-1], False

    def write_batch(self, writes: List[PendingWrite]) -> None:
        with self.ledger.lock:
            # Validate every version before staging anything
            for write in writes:
                current = self._current(write.key)
                current_version = current[1] if current else 0
                if write.expected_version is not None and write.expected_version != current_version:
                    raise StoreConflictError(
                        f"key {write.key!r} is at version {current_version}, expected {write.expected_version}"
                    )
            for write in writes:
                current = self._current(write.key)
                committed = self.ledger.state.get(write.key)
                base = self._pending[write.key][2] if write.key in self._pending else (committed[1] if committed else 0)
                self._pending[write.key] = (write.value, (current[1] if current else 0) + 1, base)

    def commit(self) -> None:
        with self.ledger.lock:
            for key, (_, _, base) in self._pending.items():
                committed = self.ledger.state.get(key)
                if (committed[1] if committed else 0) != base:
                    self._pending.clear()
                    raise StoreConflictError(f"key {key!r} was modified by a concurrent request")
            for key, (value, version, _) in self._pending.items():
                if key not in self.ledger.state:
                    bisect.insort(self.ledger.sorted_keys, key)
                self.ledger.state[key] = (value, version)
            self._pending.clear()

    def rollback(self) -> None:
        with self.ledger.lock:
            self._pending.clear()
