"""Pydantic schemas for API request/response validation"""

from pydantic import BaseModel, Field
from typing import List, Literal

from smarthome_gateway.domain import codec
from smarthome_gateway.domain.models import Home, Tower


class InvokeRequest(BaseModel):
    """Request body for POST /v1/invoke"""

    function: str = Field(..., min_length=1, description="Operation name, e.g. notifyFloorCompletion")
    args: List[str] = Field(default_factory=list, description="Positional string arguments")


class InvokeResponse(BaseModel):
    """Response for POST /v1/invoke"""

    status: Literal["OK"] = "OK"
    payload: str = ""


class HomeSchema(BaseModel):
    """Home record in its ledger wire shape"""

    name: str
    tower: str
    floor: int
    buildStatus: str
    builderPerc: int
    customerPerc: int
    customer: str

    @classmethod
    def from_domain(cls, home: Home) -> "HomeSchema":
        return cls(**codec.home_to_dict(home))


class HomeListItem(BaseModel):
    """Single {Key, Record} pair from GET /v1/homes"""

    Key: str
    Record: HomeSchema


class CreateHomeRequest(BaseModel):
    """Request body for POST /v1/homes"""

    name: str = Field(..., min_length=1, description="Home identifier, e.g. 101")
    tower: str = Field(..., min_length=1, description="Tower identifier")
    floor: int = Field(..., ge=0)


class OwnershipRequest(BaseModel):
    """Request body for PUT /v1/homes/{home_id}/owner"""

    customer: str = Field(..., min_length=1, description="New owner identity")


class TowerSchema(BaseModel):
    """Tower record in its ledger wire shape"""

    id: str
    completedFloor: int
    buildStatus: str
    verifiedFloor: int

    @classmethod
    def from_domain(cls, tower: Tower) -> "TowerSchema":
        return cls(**codec.tower_to_dict(tower))


class FloorCompletionRequest(BaseModel):
    """Request body for POST /v1/towers/{tower_id}/completion"""

    floor: int = Field(..., ge=0)


class EndorsementRequest(BaseModel):
    """Request body for PUT /v1/towers/{tower_id}/floors/{floor}/endorsement"""

    status: str = Field(..., description="OK or NOK")


class EndorsementResponse(BaseModel):
    tower_id: str
    floor: int
    bank: str
    status: str


class VerificationResponse(BaseModel):
    """Response for POST /v1/towers/{tower_id}/floors/{floor}/verification"""

    tower: TowerSchema
    homes_updated: int
