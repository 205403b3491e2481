"""Dependency injection for FastAPI endpoints"""

import logging
from functools import lru_cache

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from smarthome_gateway.config import settings
from smarthome_gateway.domain.exceptions import (
    DomainException,
    InvalidArgumentError,
    MalformedInputError,
    NotFoundError,
    OperationCancelledError,
    RecordDecodeError,
    StoreConflictError,
    StoreError,
    UnknownOperationError,
    VerificationRejectedError,
)
from smarthome_gateway.domain.workflow import CompletionWorkflow
from smarthome_gateway.infrastructure.database.session import get_db
from smarthome_gateway.infrastructure.database.store import SqlLedgerStore
from smarthome_gateway.infrastructure.ledger.base import LedgerStore
from smarthome_gateway.infrastructure.ledger.memory import InMemoryLedger, InMemoryLedgerStore

# Ordered: StoreConflictError must match before its StoreError base
_STATUS_BY_ERROR = [
    (InvalidArgumentError, 400),
    (UnknownOperationError, 400),
    (NotFoundError, 404),
    (VerificationRejectedError, 409),
    (StoreConflictError, 409),
    (MalformedInputError, 422),
    (RecordDecodeError, 500),
    (StoreError, 503),
    (OperationCancelledError, 503),
]


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


@lru_cache
def get_memory_ledger() -> InMemoryLedger:
    """Process-wide state for LEDGER_BACKEND=memory"""
    return InMemoryLedger()


def get_ledger_store(db: Session = Depends(get_db)) -> LedgerStore:
    """Provide the configured ledger store for this request"""
    if settings.ledger_backend == "memory":
        return InMemoryLedgerStore(get_memory_ledger())
    return SqlLedgerStore(db)


def get_workflow(store: LedgerStore = Depends(get_ledger_store)) -> CompletionWorkflow:
    """Provide completion workflow bound to the request's ledger store"""
    return CompletionWorkflow(store)


def http_error(e: DomainException, request_id: str) -> HTTPException:
    """Map a domain error to an HTTP error, logging server-side failures"""
    status_code = next((code for error_type, code in _STATUS_BY_ERROR if isinstance(e, error_type)), 500)
    if status_code >= 500:
        logging.error(f"Ledger operation failed: {e}", extra={"request_id": request_id})
    else:
        logging.warning(f"Ledger operation refused: {e}", extra={"request_id": request_id})
    return HTTPException(status_code=status_code, detail=str(e))
