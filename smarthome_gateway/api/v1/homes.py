"""Home endpoints - listing, lookup, creation and ownership transfer"""

from typing import List
from fastapi import APIRouter, Depends, Request, status

from smarthome_gateway.api.v1.schemas import CreateHomeRequest, HomeListItem, HomeSchema, OwnershipRequest
from smarthome_gateway.api.dependencies import get_request_id, get_workflow, http_error
from smarthome_gateway.domain.exceptions import DomainException
from smarthome_gateway.domain.workflow import CompletionWorkflow

router = APIRouter()


@router.get("/homes", response_model=List[HomeListItem])
def list_homes(request: Request, workflow: CompletionWorkflow = Depends(get_workflow)):
    """All homes in ledger key order"""
    try:
        homes = workflow.list_homes()
    except DomainException as e:
        raise http_error(e, get_request_id(request))

    return [HomeListItem(Key=home.name, Record=HomeSchema.from_domain(home)) for home in homes]


@router.get("/homes/{home_id}", response_model=HomeSchema)
def get_home(home_id: str, request: Request, workflow: CompletionWorkflow = Depends(get_workflow)):
    try:
        home = workflow.get_home(home_id)
    except DomainException as e:
        raise http_error(e, get_request_id(request))

    return HomeSchema.from_domain(home)


@router.post("/homes", response_model=HomeSchema, status_code=status.HTTP_201_CREATED)
def create_home(
    request_body: CreateHomeRequest,
    request: Request,
    workflow: CompletionWorkflow = Depends(get_workflow),
):
    """
    Register an unbooked home.

    Returns:
        Stored home with builder holding 100%
    """
    try:
        home = workflow.create_home(request_body.name, request_body.tower, request_body.floor)
    except DomainException as e:
        raise http_error(e, get_request_id(request))

    return HomeSchema.from_domain(home)


@router.put("/homes/{home_id}/owner", response_model=HomeSchema)
def change_home_ownership(
    home_id: str,
    request_body: OwnershipRequest,
    request: Request,
    workflow: CompletionWorkflow = Depends(get_workflow),
):
    """Book a home for a customer (404 if the home does not exist)"""
    try:
        home = workflow.change_home_ownership(home_id, request_body.customer)
    except DomainException as e:
        raise http_error(e, get_request_id(request))

    return HomeSchema.from_domain(home)
