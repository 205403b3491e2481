"""Completion workflow - tower state machine, verification gate and cascading home update"""

import json
import logging
import threading
from dataclasses import replace
from typing import Callable, List, Optional, Tuple, TypeVar

from smarthome_gateway.config import settings
from smarthome_gateway.domain import codec
from smarthome_gateway.domain.exceptions import (
    InvalidArgumentError,
    MalformedInputError,
    NotFoundError,
    OperationCancelledError,
    StoreConflictError,
    VerificationRejectedError,
)
from smarthome_gateway.domain.models import (
    Booked,
    CascadeResult,
    EndorsementStatus,
    FloorCompleted,
    Home,
    NotBooked,
    Tower,
    TowerStatus,
)
from smarthome_gateway.infrastructure.ledger.base import LedgerStore, PendingWrite
from smarthome_gateway.infrastructure.ledger.repositories import (
    EndorsementRepository,
    HomeRepository,
    TowerRepository,
    Versioned,
)
from smarthome_gateway.infrastructure.observability.logging import log_cascade
from smarthome_gateway.infrastructure.observability.metrics import (
    cascade_homes_histogram,
    record_gate,
    record_operation,
    store_conflict_counter,
)

R = TypeVar("R")


def seed_homes() -> List[Home]:
    """Initial homes: tower A owned outright by the builder, tower B with 20% customer share"""
    homes = [
        Home(name=f"10{i}", tower="A", floor=1, status=Booked(), customer=f"customer.10{i}@example.com")
        for i in range(1, 4)
    ]
    homes.append(Home(name="104", tower="A", floor=1, status=NotBooked()))
    homes.extend(
        Home(
            name=f"20{i}",
            tower="B",
            floor=1,
            status=Booked(),
            builder_percent=80,
            customer_percent=20,
            customer=f"customer.20{i}@example.com",
        )
        for i in range(1, 5)
    )
    return homes


def seed_towers() -> List[Tower]:
    return [Tower(id=tower_id) for tower_id in ("A", "B", "C")]


class CompletionWorkflow:
    """
    Operations over homes, towers and bank endorsements.

    Every public mutation reads what it needs, stages its writes, and hands
    them to the store as one versioned batch followed by a commit. A version
    conflict rolls the batch back and re-runs the whole operation, up to
    max_conflict_retries times.

    Tower state machine:
        NS  --notify-->  COM
        COM --verify(OK|NOK)--> endorsement recorded, tower unchanged
        endorsement != NOK --obtain--> VER + cascade to the tower's homes
        endorsement == NOK --obtain--> VerificationRejectedError, no change
    """

    def __init__(
        self,
        store: LedgerStore,
        bank: str | None = None,
        missing_endorsement_policy: str | None = None,
        enforce_monotonic_floors: bool | None = None,
        page_size: int | None = None,
        max_conflict_retries: int | None = None,
    ):
        self.store = store
        self.homes = HomeRepository(store)
        self.towers = TowerRepository(store)
        self.endorsements = EndorsementRepository(store)
        self.bank = bank or settings.endorsing_bank
        self.missing_endorsement_policy = missing_endorsement_policy or settings.missing_endorsement_policy
        self.enforce_monotonic_floors = (
            settings.enforce_monotonic_floors if enforce_monotonic_floors is None else enforce_monotonic_floors
        )
        self.page_size = settings.scan_page_size if page_size is None else page_size
        self.max_conflict_retries = (
            settings.max_conflict_retries if max_conflict_retries is None else max_conflict_retries
        )
        if self.page_size <= 0:
            raise ValueError(f"page_size must be positive, got {self.page_size}")
        if self.max_conflict_retries < 0:
            raise ValueError(f"max_conflict_retries must not be negative, got {self.max_conflict_retries}")

    def _transact(self, operation: str, body: Callable[[], R]) -> R:
        for attempt in range(self.max_conflict_retries + 1):
            try:
                result = body()
                self.store.commit()
            except StoreConflictError as e:
                self.store.rollback()
                store_conflict_counter.inc()
                if attempt == self.max_conflict_retries:
                    record_operation(operation, e)
                    raise
                logging.warning(
                    f"Ledger write conflict in {operation}, retrying",
                    extra={"operation": operation, "attempt": attempt + 1},
                )
                continue
            except Exception as e:
                self.store.rollback()
                record_operation(operation, e)
                raise
            record_operation(operation)
            return result

    @staticmethod
    def _check_floor(floor: int) -> None:
        if floor < 0:
            raise MalformedInputError(f"floor must be a non-negative integer, got {floor}")

    def _require_tower(self, tower_id: str) -> Versioned[Tower]:
        current = self.towers.get(tower_id)
        if current is None:
            raise NotFoundError(f"Tower {tower_id} not found")
        return current

    # Home lifecycle

    def init_ledger(self) -> None:
        """Seed the ledger with the demo towers and homes, overwriting existing records"""

        def body() -> None:
            homes, towers = seed_homes(), seed_towers()
            self.store.write_batch([self.homes.stage(h) for h in homes] + [self.towers.stage(t) for t in towers])
            logging.info("Ledger seeded", extra={"homes": len(homes), "towers": len(towers)})

        self._transact("initLedger", body)

    def create_home(self, home_id: str, tower_id: str, floor: int) -> Home:
        """Write an unbooked home owned entirely by the builder; an existing record is overwritten"""
        self._check_floor(floor)
        if not tower_id:
            raise InvalidArgumentError("tower id must not be empty")

        def body() -> Home:
            home = Home(name=home_id, tower=tower_id, floor=floor)
            self.store.write_batch([self.homes.stage(home)])
            return home

        return self._transact("createHome", body)

    def query_home(self, home_id: str) -> bytes:
        """Raw stored bytes; empty when the home was never written"""
        return self._transact("queryHome", lambda: self.homes.get_raw(home_id))

    def get_home(self, home_id: str) -> Home:
        def body() -> Home:
            current = self.homes.get(home_id)
            if current is None:
                raise NotFoundError(f"Home {home_id} not found")
            return current.record

        return self._transact("queryHome", body)

    def list_homes(self) -> List[Home]:
        return self._transact("queryAllHomes", lambda: [item.record for item in self.homes.scan(self.page_size)])

    def query_all_homes(self) -> bytes:
        """JSON array of {"Key", "Record"} pairs in ledger key order"""
        results = [{"Key": home.name, "Record": codec.home_to_dict(home)} for home in self.list_homes()]
        return json.dumps(results, separators=(",", ":")).encode("utf-8")

    def change_home_ownership(self, home_id: str, customer: str) -> Home:
        def body() -> Home:
            current = self.homes.get(home_id)
            if current is None:
                raise NotFoundError(f"Home {home_id} not found")
            home = replace(current.record, customer=customer, status=Booked())
            self.store.write_batch([self.homes.stage(home, current.version)])
            return home

        return self._transact("changeHomeOwnership", body)

    # Towers and endorsements

    def query_tower(self, tower_id: str) -> bytes:
        return self._transact("queryTower", lambda: self.towers.get_raw(tower_id))

    def get_tower(self, tower_id: str) -> Tower:
        return self._transact("queryTower", lambda: self._require_tower(tower_id).record)

    def notify_floor_completion(self, tower_id: str, floor: int) -> Tower:
        """Builder reports a floor complete; always overwrites completed_floor and moves the tower to COM"""
        self._check_floor(floor)

        def body() -> Tower:
            current = self._require_tower(tower_id)
            tower = replace(current.record, completed_floor=floor, status=TowerStatus.COMPLETION_NOTIFIED)
            self.store.write_batch([self.towers.stage(tower, current.version)])
            return tower

        return self._transact("notifyFloorCompletion", body)

    def verify_floor_completion(self, tower_id: str, floor: int, status: EndorsementStatus | str) -> EndorsementStatus:
        """
        Record the bank's endorsement for a floor.

        Not gated on the tower's state or existence; a later call for the same
        floor replaces the earlier status.

        Raises:
            MalformedInputError: status is not OK or NOK
        """
        self._check_floor(floor)
        try:
            endorsement = EndorsementStatus(status)
        except ValueError as e:
            raise MalformedInputError(f"endorsement status must be OK or NOK, got {status!r}") from e

        def body() -> EndorsementStatus:
            self.store.write_batch([self.endorsements.stage(tower_id, floor, self.bank, endorsement)])
            logging.info(
                "Endorsement recorded",
                extra={"tower_id": tower_id, "floor": floor, "bank": self.bank, "status": endorsement.value},
            )
            return endorsement

        return self._transact("verifyFloorCompletion", body)

    def _check_gate(self, tower_id: str, floor: int, endorsement: Optional[EndorsementStatus]) -> None:
        if endorsement is EndorsementStatus.NOK:
            record_gate(False)
            logging.warning(
                "Verification rejected by bank endorsement",
                extra={"tower_id": tower_id, "floor": floor, "bank": self.bank},
            )
            raise VerificationRejectedError(f"Floor {floor} not completed")

        if endorsement is None:
            if self.missing_endorsement_policy == "reject":
                record_gate(False)
                raise VerificationRejectedError(f"Floor {floor} has no endorsement from {self.bank}")
            logging.warning(
                "No endorsement recorded, approving by policy",
                extra={"tower_id": tower_id, "floor": floor, "bank": self.bank},
            )

    def _stage_cascade(
        self,
        tower_id: str,
        floor: int,
        cancel_event: Optional[threading.Event],
    ) -> Tuple[List[PendingWrite], int]:
        """
        Scan every home and stage the status rewrite for those in tower_id.

        Nothing is written here: a decode error or cancellation part-way
        through the scan aborts with the ledger untouched.
        """
        staged: List[PendingWrite] = []
        scanned = 0
        for item in self.homes.scan(self.page_size):
            if cancel_event is not None and cancel_event.is_set():
                raise OperationCancelledError(
                    f"Verification of tower {tower_id} floor {floor} cancelled after {scanned} homes"
                )
            scanned += 1
            if item.record.tower == tower_id:
                home = replace(item.record, status=FloorCompleted(floor=floor))
                staged.append(self.homes.stage(home, item.version))
        return staged, scanned

    def obtain_completion_verification(
        self,
        tower_id: str,
        floor: int,
        cancel_event: Optional[threading.Event] = None,
    ) -> CascadeResult:
        """
        Move a tower to VER for the given floor and cascade the status to its homes.

        Flow:
        1. Read the bank endorsement for (tower, floor)
        2. NOK -> reject; absent -> apply missing_endorsement_policy
        3. Reject floors below the tower's verified floor (when enforced)
        4. Stage "Floor N Completed" for every home in the tower
        5. Stage the tower transition last and commit everything as one batch

        Raises:
            VerificationRejectedError: Endorsement is NOK, missing under the
                reject policy, or the floor regresses
            NotFoundError: Tower does not exist
            RecordDecodeError: A scanned home record is corrupt (nothing written)
            OperationCancelledError: cancel_event was set before commit
        """
        self._check_floor(floor)

        def body() -> Tuple[CascadeResult, int]:
            self._check_gate(tower_id, floor, self.endorsements.get(tower_id, floor, self.bank))

            current = self._require_tower(tower_id)
            if self.enforce_monotonic_floors and floor < current.record.verified_floor:
                record_gate(False)
                raise VerificationRejectedError(
                    f"Floor {floor} is below verified floor {current.record.verified_floor} of tower {tower_id}"
                )

            staged, scanned = self._stage_cascade(tower_id, floor, cancel_event)
            if cancel_event is not None and cancel_event.is_set():
                raise OperationCancelledError(f"Verification of tower {tower_id} floor {floor} cancelled")

            tower = replace(
                current.record,
                completed_floor=floor,
                status=TowerStatus.VERIFIED,
                verified_floor=max(current.record.verified_floor, floor),
            )
            homes_updated = len(staged)
            staged.append(self.towers.stage(tower, current.version))
            self.store.write_batch(staged)
            return CascadeResult(tower=tower, homes_updated=homes_updated), scanned

        result, scanned = self._transact("obtainCompletionVerification", body)

        record_gate(True)
        cascade_homes_histogram.observe(result.homes_updated)
        log_cascade(tower_id, floor, scanned, result.homes_updated)
        return result
