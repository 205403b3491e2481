"""Data access layer for ledger entities"""

from dataclasses import dataclass
from typing import Generic, Iterator, Optional, TypeVar

from smarthome_gateway.domain import codec
from smarthome_gateway.domain.keys import HOME_PREFIX, endorsement_key, home_key, prefix_range, tower_key
from smarthome_gateway.domain.models import EndorsementStatus, Home, Tower
from smarthome_gateway.infrastructure.ledger.base import LedgerStore, PendingWrite

T = TypeVar("T")


@dataclass
class Versioned(Generic[T]):
    """Decoded record plus the version it was read at"""

    record: T
    version: int


class HomeRepository:
    """Repository for homes stored under the HOME: namespace"""

    def __init__(self, store: LedgerStore):
        self.store = store

    def get_raw(self, home_id: str) -> bytes:
        return self.store.get(home_key(home_id))

    def get(self, home_id: str) -> Optional[Versioned[Home]]:
        key = home_key(home_id)
        entry = self.store.get_entry(key)
        if entry is None:
            return None
        return Versioned(record=codec.decode_home(entry.value, key), version=entry.version)

    def scan(self, page_size: int = 100) -> Iterator[Versioned[Home]]:
        """Every home in key order; decode errors surface as the offending record is reached"""
        start, end = prefix_range(HOME_PREFIX)
        for entry in self.store.range_scan(start, end, page_size):
            yield Versioned(record=codec.decode_home(entry.value, entry.key), version=entry.version)

    def stage(self, home: Home, version: Optional[int] = None) -> PendingWrite:
        return PendingWrite(key=home_key(home.name), value=codec.encode_home(home), expected_version=version)


class TowerRepository:
    """Repository for towers stored under the TOWER: namespace"""

    def __init__(self, store: LedgerStore):
        self.store = store

    def get_raw(self, tower_id: str) -> bytes:
        return self.store.get(tower_key(tower_id))

    def get(self, tower_id: str) -> Optional[Versioned[Tower]]:
        key = tower_key(tower_id)
        entry = self.store.get_entry(key)
        if entry is None:
            return None
        return Versioned(record=codec.decode_tower(entry.value, key), version=entry.version)

    def stage(self, tower: Tower, version: Optional[int] = None) -> PendingWrite:
        return PendingWrite(key=tower_key(tower.id), value=codec.encode_tower(tower), expected_version=version)


class EndorsementRepository:
    """Raw status tokens keyed by (tower, floor, bank)"""

    def __init__(self, store: LedgerStore):
        self.store = store

    def get(self, tower_id: str, floor: int, bank: str) -> Optional[EndorsementStatus]:
        key = endorsement_key(tower_id, floor, bank)
        return codec.decode_endorsement(self.store.get(key), key)

    def stage(self, tower_id: str, floor: int, bank: str, status: EndorsementStatus) -> PendingWrite:
        # Banks may revise an endorsement, so the write is unconditional
        return PendingWrite(key=endorsement_key(tower_id, floor, bank), value=codec.encode_endorsement(status))
