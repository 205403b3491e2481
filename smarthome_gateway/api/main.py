"""FastAPI application factory"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from smarthome_gateway.api.dependencies import get_ledger_store
from smarthome_gateway.api.middleware import RequestIDMiddleware, MetricsMiddleware
from smarthome_gateway.api.v1 import homes, invoke, towers
from smarthome_gateway.domain.workflow import CompletionWorkflow
from smarthome_gateway.infrastructure.database.models import Base
from smarthome_gateway.infrastructure.database.session import SessionLocal, engine
from smarthome_gateway.infrastructure.observability.logging import setup_logging
from smarthome_gateway.config import settings

# Setup structured logging
setup_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the ledger table and optionally seed demo towers and homes"""
    if settings.ledger_backend == "sql":
        Base.metadata.create_all(bind=engine)

    if settings.seed_ledger_on_startup:
        db = SessionLocal()
        try:
            CompletionWorkflow(get_ledger_store(db)).init_ledger()
        finally:
            db.close()

    yield


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="SmartHome Ledger Gateway",
        description="Tower construction progress, bank endorsement and home ownership ledger",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(invoke.router, prefix="/v1", tags=["invoke"])
    app.include_router(homes.router, prefix="/v1", tags=["homes"])
    app.include_router(towers.router, prefix="/v1", tags=["towers"])

    return app


app = create_app()
