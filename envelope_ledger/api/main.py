"""FastAPI application factory"""

import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from envelope_ledger.api.dependencies import get_request_id
from envelope_ledger.api.middleware import RequestIDMiddleware, MetricsMiddleware
from envelope_ledger.api.v1 import (
    accounts,
    bank_feed,
    duplicates,
    envelopes,
    labels,
    reconciliation,
    recurring,
    rules,
    transactions,
)
from envelope_ledger.domain.exceptions import (
    AlreadyProcessedError,
    BankFeedError,
    DomainException,
    DuplicateReviewRequiredError,
    InconsistentStateError,
    InvalidAmountError,
    InvalidRequestError,
    MissingEnvelopeError,
    NotFoundError,
)
from envelope_ledger.infrastructure.observability.logging import setup_logging
from envelope_ledger.infrastructure.observability.metrics import operation_failure_counter
from envelope_ledger.config import settings

# Setup structured logging
setup_logging(settings.log_level)

logger = logging.getLogger("envelope_ledger.api")

# Checked in order; subclasses before their parents
ERROR_STATUS = (
    (NotFoundError, 404),
    (AlreadyProcessedError, 409),
    (DuplicateReviewRequiredError, 409),
    (MissingEnvelopeError, 422),
    (InvalidAmountError, 422),
    (InvalidRequestError, 422),
    (InconsistentStateError, 500),
    (BankFeedError, 503),
)


def status_for(exc: DomainException) -> int:
    for error_type, status in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status
    return 400


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    """Translate ledger errors into HTTP responses; the unit of work has already rolled back"""
    status = status_for(exc)
    error = type(exc).__name__
    operation_failure_counter.labels(error=error).inc()

    log = logger.error if status >= 500 else logger.warning
    log(
        f"Ledger operation failed: {exc}",
        extra={"request_id": get_request_id(request), "error": error, "path": request.url.path},
    )
    return JSONResponse(status_code=status, content={"detail": str(exc), "error": error})


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Envelope Ledger",
        description="Envelope budgeting ledger: approvals, duplicates, recurring income and reconciliation",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_exception_handler(DomainException, domain_exception_handler)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(accounts.router, prefix="/v1", tags=["accounts"])
    app.include_router(envelopes.router, prefix="/v1", tags=["envelopes"])
    app.include_router(transactions.router, prefix="/v1", tags=["transactions"])
    app.include_router(duplicates.router, prefix="/v1", tags=["duplicates"])
    app.include_router(rules.router, prefix="/v1", tags=["rules"])
    app.include_router(recurring.router, prefix="/v1", tags=["recurring"])
    app.include_router(reconciliation.router, prefix="/v1", tags=["reconciliation"])
    app.include_router(labels.router, prefix="/v1", tags=["labels"])
    app.include_router(bank_feed.router, prefix="/v1", tags=["bank-feed"])

    return app


app = create_app()
