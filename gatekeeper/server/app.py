"""
FastAPI application setup and configuration.
"""

import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..exceptions import CoreError, InvalidOperationError, NotFoundError
from .middleware import RequestLoggingMiddleware

# =============================================================================
# Constants
# =============================================================================

DEFAULT_CORS_ORIGINS = "http://localhost,http://127.0.0.1"
API_TITLE = "Gatekeeper Approval API"
API_VERSION = "0.1.0"


# =============================================================================
# FastAPI App
# =============================================================================

app = FastAPI(title=API_TITLE, version=API_VERSION)


# =============================================================================
# CORS Configuration
# =============================================================================

# The API can grant command execution; only list origins you trust.
cors_origins = [origin.strip() for origin in os.environ.get("CORS_ORIGINS", DEFAULT_CORS_ORIGINS).split(",")]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Request logging middleware (added after CORS so it runs first)
app.add_middleware(RequestLoggingMiddleware)


# =============================================================================
# Domain error mapping
# =============================================================================


@app.exception_handler(CoreError)
async def core_error_handler(request: Request, exc: CoreError) -> JSONResponse:
    if isinstance(exc, NotFoundError):
        status = 404
    elif isinstance(exc, InvalidOperationError):
        status = 409
    else:
        status = 500
    return JSONResponse(status_code=status, content={"detail": str(exc)})
