"""Tower endpoints - completion notice, bank endorsement and verification"""

from fastapi import APIRouter, Depends, Path, Request

from smarthome_gateway.api.v1.schemas import (
    EndorsementRequest,
    EndorsementResponse,
    FloorCompletionRequest,
    TowerSchema,
    VerificationResponse,
)
from smarthome_gateway.api.dependencies import get_request_id, get_workflow, http_error
from smarthome_gateway.domain.exceptions import DomainException
from smarthome_gateway.domain.workflow import CompletionWorkflow

router = APIRouter()


@router.get("/towers/{tower_id}", response_model=TowerSchema)
def get_tower(tower_id: str, request: Request, workflow: CompletionWorkflow = Depends(get_workflow)):
    try:
        tower = workflow.get_tower(tower_id)
    except DomainException as e:
        raise http_error(e, get_request_id(request))

    return TowerSchema.from_domain(tower)


@router.post("/towers/{tower_id}/completion", response_model=TowerSchema)
def notify_floor_completion(
    tower_id: str,
    request_body: FloorCompletionRequest,
    request: Request,
    workflow: CompletionWorkflow = Depends(get_workflow),
):
    """Builder notifies that a floor is complete; tower moves to COM"""
    try:
        tower = workflow.notify_floor_completion(tower_id, request_body.floor)
    except DomainException as e:
        raise http_error(e, get_request_id(request))

    return TowerSchema.from_domain(tower)


@router.put("/towers/{tower_id}/floors/{floor}/endorsement", response_model=EndorsementResponse)
def verify_floor_completion(
    tower_id: str,
    request_body: EndorsementRequest,
    request: Request,
    floor: int = Path(..., ge=0),
    workflow: CompletionWorkflow = Depends(get_workflow),
):
    """Bank records OK or NOK for a floor"""
    try:
        endorsement = workflow.verify_floor_completion(tower_id, floor, request_body.status)
    except DomainException as e:
        raise http_error(e, get_request_id(request))

    return EndorsementResponse(tower_id=tower_id, floor=floor, bank=workflow.bank, status=endorsement.value)


@router.post("/towers/{tower_id}/floors/{floor}/verification", response_model=VerificationResponse)
def obtain_completion_verification(
    tower_id: str,
    request: Request,
    floor: int = Path(..., ge=0),
    workflow: CompletionWorkflow = Depends(get_workflow),
):
    """
    Pass the verification gate and cascade the floor status to the tower's homes.

    Returns:
        Verified tower and number of homes updated (409 when the endorsement is NOK)
    """
    try:
        result = workflow.obtain_completion_verification(tower_id, floor)
    except DomainException as e:
        raise http_error(e, get_request_id(request))

    return VerificationResponse(tower=TowerSchema.from_domain(result.tower), homes_updated=result.homes_updated)
