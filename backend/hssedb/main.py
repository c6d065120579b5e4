# backend/hssedb/main.py
import logging
import os
from typing import List

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .apps.audit.router import router as audit_router
from .apps.events.router import router as events_router
from .apps.notifications.router import router as notifications_router
from .apps.workflow.errors import (
    AggregateNotFoundError,
    ConcurrencyConflictError,
    DomainError,
    DomainValidationError,
    InvalidOperationError,
)

logger = logging.getLogger(__name__)


def _allowed_origins() -> List[str]:
    """
    Parse CORS_ALLOWED_ORIGINS from env.

    Accepts comma-separated origins. If unset, defaults to local dev ports.
    """
    raw = os.getenv("CORS_ALLOWED_ORIGINS", "")
    if raw:
        origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
        if origins:
            return origins
    return [
        "http://127.0.0.1:5173",
        "http://localhost:5173",
        "http://localhost:4173",
    ]


def _status_for(exc: DomainError) -> int:
    if isinstance(exc, DomainValidationError):
        return 422
    if isinstance(exc, AggregateNotFoundError):
        return 404
    if isinstance(exc, (InvalidOperationError, ConcurrencyConflictError)):
        return 409
    return 400


app = FastAPI(title="HSSE Portal API", version="1.0.0")
cors_origins = _allowed_origins()
allow_credentials = "*" not in cors_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    status_code = _status_for(exc)
    logger.info(
        "Domain error",
        extra={"path": request.url.path, "code": exc.code, "status_code": status_code},
    )
    return JSONResponse(status_code=status_code, content=exc.to_dict())


@app.get("/", tags=["health"])
def read_root():
    return {"status": "ok", "message": "HSSE Portal backend is running"}


@app.get("/health", tags=["health"])
def health():
    return {"status": "ok"}


app.include_router(events_router)
app.include_router(audit_router)
app.include_router(notifications_router)
