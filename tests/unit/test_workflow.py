"""Unit tests for the completion workflow, run against every ledger store backend"""

import json
import threading
import pytest
from smarthome_gateway.domain import codec
from smarthome_gateway.domain.exceptions import (
    InvalidArgumentError,
    MalformedInputError,
    NotFoundError,
    OperationCancelledError,
    RecordDecodeError,
    StoreConflictError,
    VerificationRejectedError,
)
from smarthome_gateway.domain.keys import home_key
from smarthome_gateway.domain.models import (
    Booked,
    EndorsementStatus,
    FloorCompleted,
    NotBooked,
    Tower,
    TowerStatus,
)
from smarthome_gateway.domain.workflow import CompletionWorkflow
from smarthome_gateway.infrastructure.ledger.memory import InMemoryLedgerStore


def _statuses(workflow: CompletionWorkflow) -> dict:
    return {home.name: home.status for home in workflow.list_homes()}


def test_init_ledger_seeds_towers_and_homes(seeded_workflow: CompletionWorkflow):
    homes = seeded_workflow.list_homes()

    assert [h.name for h in homes] == ["101", "102", "103", "104", "201", "202", "203", "204"]
    assert sum(1 for h in homes if h.tower == "A") == 4
    assert sum(1 for h in homes if h.tower == "B") == 4
    assert all(h.builder_percent + h.customer_percent == 100 for h in homes)
    for tower_id in ("A", "B", "C"):
        assert seeded_workflow.get_tower(tower_id) == Tower(id=tower_id)


@pytest.mark.parametrize("prior", ["fresh", "notified", "verified"])
def test_notify_sets_floor_and_com_regardless_of_prior_state(seeded_workflow: CompletionWorkflow, prior: str):
    """Notification always overwrites completed_floor and moves the tower to COM"""
    if prior in ("notified", "verified"):
        seeded_workflow.notify_floor_completion("A", 5)
    if prior == "verified":
        seeded_workflow.verify_floor_completion("A", 5, "OK")
        seeded_workflow.obtain_completion_verification("A", 5)

    tower = seeded_workflow.notify_floor_completion("A", 2)

    assert tower.completed_floor == 2
    assert tower.status is TowerStatus.COMPLETION_NOTIFIED
    assert seeded_workflow.get_tower("A") == tower


def test_notify_is_idempotent(seeded_workflow: CompletionWorkflow):
    first = seeded_workflow.notify_floor_completion("B", 3)
    second = seeded_workflow.notify_floor_completion("B", 3)

    assert first == second == seeded_workflow.get_tower("B")


def test_notify_unknown_tower(seeded_workflow: CompletionWorkflow):
    with pytest.raises(NotFoundError):
        seeded_workflow.notify_floor_completion("Z", 1)


def test_nok_endorsement_blocks_verification(seeded_workflow: CompletionWorkflow):
    """Gate rejects and leaves tower and homes exactly as they were"""
    seeded_workflow.notify_floor_completion("A", 1)
    seeded_workflow.verify_floor_completion("A", 1, "NOK")
    tower_before = seeded_workflow.get_tower("A")
    homes_before = _statuses(seeded_workflow)

    with pytest.raises(VerificationRejectedError, match="Floor 1 not completed"):
        seeded_workflow.obtain_completion_verification("A", 1)

    assert seeded_workflow.get_tower("A") == tower_before
    assert _statuses(seeded_workflow) == homes_before


def test_ok_endorsement_verifies_and_cascades_to_tower_homes_only(seeded_workflow: CompletionWorkflow):
    """Exactly the 4 homes of tower A change; tower B's 4 homes do not"""
    homes_before = _statuses(seeded_workflow)
    seeded_workflow.notify_floor_completion("A", 1)
    seeded_workflow.verify_floor_completion("A", 1, "OK")

    result = seeded_workflow.obtain_completion_verification("A", 1)

    assert result.homes_updated == 4
    tower = seeded_workflow.get_tower("A")
    assert tower.status is TowerStatus.VERIFIED
    assert tower.completed_floor == 1
    assert result.tower == tower

    homes_after = _statuses(seeded_workflow)
    for name in ("101", "102", "103", "104"):
        assert homes_after[name] == FloorCompleted(floor=1)
        assert codec.decode_home(seeded_workflow.query_home(name)).status == FloorCompleted(floor=1)
    for name in ("201", "202", "203", "204"):
        assert homes_after[name] == homes_before[name]
    assert seeded_workflow.get_tower("B") == Tower(id="B")


def test_cascade_keeps_ownership_fields(seeded_workflow: CompletionWorkflow):
    seeded_workflow.verify_floor_completion("B", 2, "OK")
    seeded_workflow.obtain_completion_verification("B", 2)

    home = seeded_workflow.get_home("201")
    assert home.customer == "customer.201@example.com"
    assert (home.builder_percent, home.customer_percent) == (80, 20)
    assert home.floor == 1


def test_cascade_over_tower_without_homes(seeded_workflow: CompletionWorkflow):
    seeded_workflow.verify_floor_completion("C", 1, "OK")

    result = seeded_workflow.obtain_completion_verification("C", 1)

    assert result.homes_updated == 0
    assert result.tower.status is TowerStatus.VERIFIED


def test_revised_endorsement_replaces_previous(seeded_workflow: CompletionWorkflow):
    """A bank can overturn NOK with a later OK for the same floor"""
    seeded_workflow.verify_floor_completion("A", 1, "NOK")
    seeded_workflow.verify_floor_completion("A", 1, EndorsementStatus.OK)

    assert seeded_workflow.obtain_completion_verification("A", 1).tower.status is TowerStatus.VERIFIED


def test_endorsements_are_per_floor(seeded_workflow: CompletionWorkflow):
    seeded_workflow.verify_floor_completion("A", 1, "NOK")
    seeded_workflow.verify_floor_completion("A", 2, "OK")

    assert seeded_workflow.obtain_completion_verification("A", 2).tower.completed_floor == 2


def test_endorsement_without_notification_is_accepted(seeded_workflow: CompletionWorkflow):
    """Endorsing is not gated on the tower being in COM"""
    assert seeded_workflow.verify_floor_completion("A", 4, "OK") is EndorsementStatus.OK
    assert seeded_workflow.get_tower("A").status is TowerStatus.NOT_STARTED


@pytest.mark.parametrize("status", ["ok", "MAYBE", "", "OK "])
def test_endorsement_status_must_be_ok_or_nok(seeded_workflow: CompletionWorkflow, status: str):
    with pytest.raises(MalformedInputError):
        seeded_workflow.verify_floor_completion("A", 1, status)


def test_missing_endorsement_approved_by_default(seeded_workflow: CompletionWorkflow):
    """Absence of an endorsement passes the gate under the approve policy"""
    result = seeded_workflow.obtain_completion_verification("A", 3)

    assert result.tower.status is TowerStatus.VERIFIED
    assert result.homes_updated == 4


def test_missing_endorsement_rejected_by_strict_policy(workflow_factory):
    workflow = workflow_factory(missing_endorsement_policy="reject")
    workflow.init_ledger()
    homes_before = _statuses(workflow)

    with pytest.raises(VerificationRejectedError, match="no endorsement"):
        workflow.obtain_completion_verification("A", 3)

    assert workflow.get_tower("A") == Tower(id="A")
    assert _statuses(workflow) == homes_before


def test_verified_floor_cannot_regress(seeded_workflow: CompletionWorkflow):
    seeded_workflow.verify_floor_completion("A", 3, "OK")
    seeded_workflow.verify_floor_completion("A", 2, "OK")
    seeded_workflow.obtain_completion_verification("A", 3)

    with pytest.raises(VerificationRejectedError, match="below verified floor 3"):
        seeded_workflow.obtain_completion_verification("A", 2)

    tower = seeded_workflow.get_tower("A")
    assert (tower.completed_floor, tower.verified_floor) == (3, 3)


def test_regression_allowed_when_not_enforced(workflow_factory):
    workflow = workflow_factory(enforce_monotonic_floors=False)
    workflow.init_ledger()
    workflow.obtain_completion_verification("A", 3)

    tower = workflow.obtain_completion_verification("A", 2).tower

    assert tower.completed_floor == 2
    assert tower.verified_floor == 3


def test_corrupt_home_aborts_cascade_before_any_write(seeded_workflow: CompletionWorkflow):
    """A decode failure mid-scan leaves the tower and every home untouched"""
    seeded_workflow.store.put(home_key("150"), b"{corrupt")
    seeded_workflow.store.commit()
    seeded_workflow.verify_floor_completion("A", 1, "OK")

    with pytest.raises(RecordDecodeError):
        seeded_workflow.obtain_completion_verification("A", 1)

    assert seeded_workflow.get_tower("A") == Tower(id="A")
    assert seeded_workflow.get_home("101").status == Booked()
    assert seeded_workflow.get_home("104").status == NotBooked()


def test_cancellation_leaves_no_partial_writes(seeded_workflow: CompletionWorkflow):
    seeded_workflow.verify_floor_completion("A", 1, "OK")
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(OperationCancelledError):
        seeded_workflow.obtain_completion_verification("A", 1, cancel_event=cancel)

    assert seeded_workflow.get_tower("A") == Tower(id="A")
    assert seeded_workflow.get_home("101").status == Booked()


def test_unknown_tower_verification(seeded_workflow: CompletionWorkflow):
    with pytest.raises(NotFoundError):
        seeded_workflow.obtain_completion_verification("Z", 1)


def test_negative_floor_rejected(seeded_workflow: CompletionWorkflow):
    with pytest.raises(MalformedInputError):
        seeded_workflow.notify_floor_completion("A", -1)
    with pytest.raises(MalformedInputError):
        seeded_workflow.obtain_completion_verification("A", -1)


def test_create_then_query_home_round_trip(workflow: CompletionWorkflow):
    workflow.create_home("301", "C", 3)

    home = codec.decode_home(workflow.query_home("301"))

    assert (home.name, home.tower, home.floor) == ("301", "C", 3)
    assert home.status == NotBooked()
    assert (home.builder_percent, home.customer_percent, home.customer) == (100, 0, "")


def test_create_home_overwrites_existing(seeded_workflow: CompletionWorkflow):
    seeded_workflow.create_home("101", "B", 2)

    home = seeded_workflow.get_home("101")
    assert (home.tower, home.floor, home.customer) == ("B", 2, "")


def test_create_home_requires_identifiers(workflow: CompletionWorkflow):
    with pytest.raises(InvalidArgumentError):
        workflow.create_home("", "A", 1)
    with pytest.raises(InvalidArgumentError):
        workflow.create_home("301", "", 1)


def test_query_missing_home_is_empty(workflow: CompletionWorkflow):
    assert workflow.query_home("999") == b""
    assert workflow.query_tower("Z") == b""


def test_change_home_ownership(seeded_workflow: CompletionWorkflow):
    seeded_workflow.change_home_ownership("104", "new.owner@example.com")

    home = codec.decode_home(seeded_workflow.query_home("104"))
    assert home.customer == "new.owner@example.com"
    assert home.status == Booked()
    assert (home.builder_percent, home.customer_percent) == (100, 0)


def test_change_ownership_of_missing_home(workflow: CompletionWorkflow):
    with pytest.raises(NotFoundError):
        workflow.change_home_ownership("999", "someone@example.com")
    assert workflow.query_home("999") == b""


def test_query_all_homes_lists_only_homes(seeded_workflow: CompletionWorkflow):
    """Tower and endorsement keys never appear in the home listing"""
    seeded_workflow.verify_floor_completion("A", 1, "OK")
    seeded_workflow.create_home("TESTHOME", "C", 3)

    listing = json.loads(seeded_workflow.query_all_homes())

    assert [item["Key"] for item in listing] == [
        "101", "102", "103", "104", "201", "202", "203", "204", "TESTHOME",
    ]
    assert listing[0]["Record"]["buildStatus"] == "Booked"
    assert listing[-1]["Record"] == {
        "name": "TESTHOME",
        "tower": "C",
        "floor": 3,
        "buildStatus": "NotBooked",
        "builderPerc": 100,
        "customerPerc": 0,
        "customer": "",
    }


class FlakyStore(InMemoryLedgerStore):
    """Raises a version conflict on the first `failures` batches"""

    def __init__(self, failures: int):
        super().__init__()
        self.failures = failures
        self.attempts = 0

    def write_batch(self, writes):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise StoreConflictError("simulated concurrent update")
        super().write_batch(writes)


def test_conflict_is_retried():
    store = FlakyStore(failures=0)
    CompletionWorkflow(store, max_conflict_retries=2).init_ledger()
    store.failures, store.attempts = 2, 0

    workflow = CompletionWorkflow(store, missing_endorsement_policy="approve", max_conflict_retries=2)
    result = workflow.obtain_completion_verification("A", 1)

    assert store.attempts == 3
    assert result.homes_updated == 4


def test_conflict_surfaces_after_retries_exhausted():
    store = FlakyStore(failures=0)
    workflow = CompletionWorkflow(store, max_conflict_retries=1)
    workflow.init_ledger()
    store.failures, store.attempts = 5, 0

    with pytest.raises(StoreConflictError):
        workflow.notify_floor_completion("A", 1)

    assert store.attempts == 2
    assert workflow.get_tower("A") == Tower(id="A")
