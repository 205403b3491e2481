"""Domain models - pure Python dataclasses representing ledger entities"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Union


@dataclass(frozen=True)
class NotBooked:
    """Home is available for booking"""


@dataclass(frozen=True)
class Booked:
    """Home has an owning customer"""


@dataclass(frozen=True)
class FloorCompleted:
    """Set by the cascading update once the home's tower has a verified floor"""

    floor: int


HomeStatus = Union[NotBooked, Booked, FloorCompleted]


class TowerStatus(str, Enum):
    """Construction status of a tower"""

    NOT_STARTED = "NS"
    COMPLETION_NOTIFIED = "COM"
    VERIFIED = "VER"


class EndorsementStatus(str, Enum):
    """Bank attestation for a (tower, floor) pair"""

    OK = "OK"
    NOK = "NOK"


@dataclass
class Home:
    """Purchasable unit located on one floor of a tower"""

    name: str
    tower: str
    floor: int
    status: HomeStatus = field(default_factory=NotBooked)
    builder_percent: int = 100
    customer_percent: int = 0
    customer: str = ""

    def __post_init__(self):
        if self.floor < 0:
            raise ValueError(f"floor must be non-negative, got {self.floor}")
        for share in (self.builder_percent, self.customer_percent):
            if not 0 <= share <= 100:
                raise ValueError(f"ownership share out of range: {share}")
        # Builder and customer shares split the whole unit
        if self.builder_percent + self.customer_percent != 100:
            raise ValueError(
                f"builder and customer shares must sum to 100, got "
                f"{self.builder_percent} + {self.customer_percent}"
            )


@dataclass
class Tower:
    """Construction unit containing many homes"""

    id: str
    completed_floor: int = 0
    status: TowerStatus = TowerStatus.NOT_STARTED
    verified_floor: int = 0


@dataclass
class CascadeResult:
    """Outcome of a verified floor transition"""

    tower: Tower
    homes_updated: int
