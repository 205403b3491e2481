"""Ledger key layout: one prefix per entity type plus composite endorsement keys"""

from typing import Sequence, Tuple

from smarthome_gateway.domain.exceptions import InvalidArgumentError

HOME_PREFIX = "HOME:"
TOWER_PREFIX = "TOWER:"

ENDORSEMENT_NAMESPACE = "tower~floor~bank"

# ASCII unit separator; composite keys sort ahead of every printable prefix
COMPOSITE_SEPARATOR = "\x1f"


def _check_identifier(kind: str, value: str) -> None:
    if not value:
        raise InvalidArgumentError(f"{kind} id must not be empty")
    if COMPOSITE_SEPARATOR in value:
        raise InvalidArgumentError(f"{kind} id contains a reserved character")


def home_key(home_id: str) -> str:
    _check_identifier("home", home_id)
    return HOME_PREFIX + home_id


def tower_key(tower_id: str) -> str:
    _check_identifier("tower", tower_id)
    return TOWER_PREFIX + tower_id


def prefix_range(prefix: str) -> Tuple[str, str]:
    """
    Half-open key range [start, end) covering exactly the keys that begin with prefix.

    The end key bumps the last character of the prefix, so "HOME:" scans up to
    (but excluding) "HOME;".
    """
    if not prefix:
        raise ValueError("prefix must not be empty")
    return prefix, prefix[:-1] + chr(ord(prefix[-1]) + 1)


def composite_key(namespace: str, parts: Sequence[str]) -> str:
    """
    Build a deterministic key from a namespace and ordered attribute values.

    Layout: SEP namespace SEP part1 SEP part2 ... SEP. A part containing the
    separator would make two different tuples collide, so it is rejected.
    """
    if not namespace or COMPOSITE_SEPARATOR in namespace:
        raise InvalidArgumentError(f"invalid composite key namespace: {namespace!r}")
    for part in parts:
        if COMPOSITE_SEPARATOR in part:
            raise InvalidArgumentError(f"composite key part contains a reserved character: {part!r}")
    return COMPOSITE_SEPARATOR + COMPOSITE_SEPARATOR.join([namespace, *parts]) + COMPOSITE_SEPARATOR


def endorsement_key(tower_id: str, floor: int, bank: str) -> str:
    _check_identifier("tower", tower_id)
    _check_identifier("bank", bank)
    return composite_key(ENDORSEMENT_NAMESPACE, [tower_id, str(floor), bank])
