"""Function-name dispatch for string-argument invocations"""

import re
from typing import Callable, Dict, List, NamedTuple

from smarthome_gateway.config import settings
from smarthome_gateway.domain.exceptions import InvalidArgumentError, MalformedInputError, UnknownOperationError
from smarthome_gateway.domain.workflow import CompletionWorkflow

_STRICT_FLOOR = re.compile(r"[0-9]+")
_LENIENT_FLOOR = re.compile(r"[+-]?[0-9]+")


def parse_floor(raw: str, strict: bool = True) -> int:
    """
    Parse a floor argument.

    Strict mode accepts only plain non-negative decimal digits. Lenient mode
    turns anything that is not an integer into floor 0, as legacy ledger
    clients expect. Negative integers pass through here and are rejected by
    the workflow floor check in both modes.
    """
    if strict:
        if not _STRICT_FLOOR.fullmatch(raw):
            raise MalformedInputError(f"floor must be a non-negative integer, got {raw!r}")
        return int(raw)
    return int(raw) if _LENIENT_FLOOR.fullmatch(raw) else 0


class Operation(NamedTuple):
    arity: int
    handler: Callable[[CompletionWorkflow, List[str], bool], bytes]


def _init_ledger(wf: CompletionWorkflow, args: List[str], strict: bool) -> bytes:
    wf.init_ledger()
    return b""


def _create_home(wf: CompletionWorkflow, args: List[str], strict: bool) -> bytes:
    wf.create_home(args[0], args[1], parse_floor(args[2], strict))
    return b""


def _change_home_ownership(wf: CompletionWorkflow, args: List[str], strict: bool) -> bytes:
    wf.change_home_ownership(args[0], args[1])
    return b""


def _notify_floor_completion(wf: CompletionWorkflow, args: List[str], strict: bool) -> bytes:
    wf.notify_floor_completion(args[0], parse_floor(args[1], strict))
    return b""


def _verify_floor_completion(wf: CompletionWorkflow, args: List[str], strict: bool) -> bytes:
    wf.verify_floor_completion(args[0], parse_floor(args[1], strict), args[2])
    return b""


def _obtain_completion_verification(wf: CompletionWorkflow, args: List[str], strict: bool) -> bytes:
    wf.obtain_completion_verification(args[0], parse_floor(args[1], strict))
    return b""


OPERATIONS: Dict[str, Operation] = {
    "initLedger": Operation(0, _init_ledger),
    "queryHome": Operation(1, lambda wf, args, strict: wf.query_home(args[0])),
    "queryTower": Operation(1, lambda wf, args, strict: wf.query_tower(args[0])),
    "createHome": Operation(3, _create_home),
    "queryAllHomes": Operation(0, lambda wf, args, strict: wf.query_all_homes()),
    "changeHomeOwnership": Operation(2, _change_home_ownership),
    "notifyFloorCompletion": Operation(2, _notify_floor_completion),
    "verifyFloorCompletion": Operation(3, _verify_floor_completion),
    "obtainCompletionVerification": Operation(2, _obtain_completion_verification),
}


def invoke(
    workflow: CompletionWorkflow,
    function: str,
    args: List[str],
    strict_floor_parsing: bool | None = None,
) -> bytes:
    """
    Route a named operation with string arguments to the workflow.

    Returns the operation payload (empty for writes).

    Raises:
        UnknownOperationError: function is not a known operation
        InvalidArgumentError: wrong number of arguments
    """
    operation = OPERATIONS.get(function)
    if operation is None:
        raise UnknownOperationError(f"Invalid function name {function!r}")
    if len(args) != operation.arity:
        raise InvalidArgumentError(f"Incorrect number of arguments. Expecting {operation.arity}")

    strict = settings.strict_floor_parsing if strict_floor_parsing is None else strict_floor_parsing
    return operation.handler(workflow, args, strict)
