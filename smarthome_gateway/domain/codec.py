"""JSON encoding of ledger records, keeping the legacy wire field names"""

import json
import re
from typing import Any, Dict, Optional

from smarthome_gateway.domain.exceptions import RecordDecodeError
from smarthome_gateway.domain.models import (
    Booked,
    EndorsementStatus,
    FloorCompleted,
    Home,
    HomeStatus,
    NotBooked,
    Tower,
    TowerStatus,
)

NOT_BOOKED = "NotBooked"
BOOKED = "Booked"
_FLOOR_COMPLETED = re.compile(r"^Floor (\d+) Completed$")


def encode_home_status(status: HomeStatus) -> str:
    if isinstance(status, NotBooked):
        return NOT_BOOKED
    if isinstance(status, Booked):
        return BOOKED
    if isinstance(status, FloorCompleted):
        return f"Floor {status.floor} Completed"
    raise TypeError(f"unsupported home status: {status!r}")


def decode_home_status(raw: str) -> HomeStatus:
    if raw == NOT_BOOKED:
        return NotBooked()
    if raw == BOOKED:
        return Booked()
    match = _FLOOR_COMPLETED.match(raw)
    if match:
        return FloorCompleted(floor=int(match.group(1)))
    raise ValueError(f"unknown buildStatus {raw!r}")


def home_to_dict(home: Home) -> Dict[str, Any]:
    return {
        "name": home.name,
        "tower": home.tower,
        "floor": home.floor,
        "buildStatus": encode_home_status(home.status),
        "builderPerc": home.builder_percent,
        "customerPerc": home.customer_percent,
        "customer": home.customer,
    }


def tower_to_dict(tower: Tower) -> Dict[str, Any]:
    return {
        "id": tower.id,
        "completedFloor": tower.completed_floor,
        "buildStatus": tower.status.value,
        "verifiedFloor": tower.verified_floor,
    }


def encode_home(home: Home) -> bytes:
    return json.dumps(home_to_dict(home), separators=(",", ":")).encode("utf-8")


def encode_tower(tower: Tower) -> bytes:
    return json.dumps(tower_to_dict(tower), separators=(",", ":")).encode("utf-8")


def _load_object(raw: bytes, kind: str, key: str) -> Dict[str, Any]:
    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise RecordDecodeError(f"{kind} record at {key!r} is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise RecordDecodeError(f"{kind} record at {key!r} is not a JSON object")
    return data


def _field(data: Dict[str, Any], name: str, expected: type) -> Any:
    value = data[name]
    # bool is a subclass of int; reject it for numeric fields
    if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
        raise TypeError(f"field {name!r} must be {expected.__name__}, got {type(value).__name__}")
    return value


def decode_home(raw: bytes, key: str = "") -> Home:
    """
    Decode stored bytes into a Home.

    Raises:
        RecordDecodeError: On invalid JSON, missing/mistyped fields, an unknown
            buildStatus, or shares that break the builder + customer == 100 rule
    """
    data = _load_object(raw, "home", key)
    try:
        return Home(
            name=_field(data, "name", str),
            tower=_field(data, "tower", str),
            floor=_field(data, "floor", int),
            status=decode_home_status(_field(data, "buildStatus", str)),
            builder_percent=_field(data, "builderPerc", int),
            customer_percent=_field(data, "customerPerc", int),
            customer=_field(data, "customer", str),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise RecordDecodeError(f"Malformed home record at {key!r}: {e}") from e


def decode_tower(raw: bytes, key: str = "") -> Tower:
    """Decode stored bytes into a Tower; verifiedFloor is optional for records written before it existed"""
    data = _load_object(raw, "tower", key)
    try:
        return Tower(
            id=_field(data, "id", str),
            completed_floor=_field(data, "completedFloor", int),
            status=TowerStatus(_field(data, "buildStatus", str)),
            verified_floor=_field(data, "verifiedFloor", int) if "verifiedFloor" in data else 0,
        )
    except (KeyError, TypeError, ValueError) as e:
        raise RecordDecodeError(f"Malformed tower record at {key!r}: {e}") from e


def encode_endorsement(status: EndorsementStatus) -> bytes:
    # Raw token, not JSON
    return status.value.encode("utf-8")


def decode_endorsement(raw: bytes, key: str = "") -> Optional[EndorsementStatus]:
    """Empty bytes mean no bank has acted yet and decode to None"""
    if not raw:
        return None
    try:
        return EndorsementStatus(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise RecordDecodeError(f"Malformed endorsement at {key!r}: {raw!r}") from e
