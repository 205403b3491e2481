"""POST /v1/invoke - Run a named ledger operation with string arguments"""

import time
from fastapi import APIRouter, Depends, Request

from smarthome_gateway.api.v1.schemas import InvokeRequest, InvokeResponse
from smarthome_gateway.api.dependencies import get_request_id, get_workflow, http_error
from smarthome_gateway.domain.exceptions import DomainException
from smarthome_gateway.domain.invocation import invoke
from smarthome_gateway.domain.workflow import CompletionWorkflow
from smarthome_gateway.infrastructure.observability.logging import log_operation

router = APIRouter()


@router.post("/invoke", response_model=InvokeResponse)
def invoke_operation(
    request_body: InvokeRequest,
    request: Request,
    workflow: CompletionWorkflow = Depends(get_workflow),
):
    """
    Run one operation, e.g. {"function": "notifyFloorCompletion", "args": ["A", "3"]}.

    Returns:
        Operation payload as text (raw record JSON for queries, empty for writes)
    """
    start_time = time.time()
    request_id = get_request_id(request)

    try:
        payload = invoke(workflow, request_body.function, request_body.args)
    except DomainException as e:
        log_operation(request_id, request_body.function, type(e).__name__, (time.time() - start_time) * 1000)
        raise http_error(e, request_id)

    log_operation(request_id, request_body.function, "success", (time.time() - start_time) * 1000)
    return InvokeResponse(payload=payload.decode("utf-8", errors="replace"))
