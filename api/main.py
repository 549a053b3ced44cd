"""
api/main.py -- FastAPI application for psst.

Serves the same decoding engine as the CLI, returning certificate reports as
rows of data instead of a rendered table.

Run with:  uvicorn api.main:app --reload

Request path through the middleware, outermost first: TrustedHostMiddleware,
CORSMiddleware, SlowAPIMiddleware. The lifespan reads settings and the trust
store once; every request shares them through app.state.

Every error leaves as {"error": {"code", "message", "detail"}}. Decoding
errors (PsstError) keep their error_code, so clients can branch on
"SECRET-002" rather than parse messages.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.secrets import router as secrets_router
from core.config import get_settings
from core.errors import MissingKey, PsstError, UnknownKey
from core.trust import load_trust_store

VERSION = "0.1.0"

ALLOWED_HOSTS = ["localhost", "127.0.0.1", "*.localhost", "testserver"]
CORS_ORIGINS = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

# A key the caller asked for is absent: the resource does not exist.
NOT_FOUND_ERRORS = (MissingKey, UnknownKey)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("psst.api")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    app.state.settings = settings
    app.state.trust_store = load_trust_store(settings.trust_bundle)
    logger.info("psst API %s ready, trust roots from %s", VERSION, settings.trust_bundle or "certifi bundle")
    yield
    logger.info("psst API stopped")


app = FastAPI(
    title="psst API",
    description="Decode Kubernetes secrets: Helm releases and TLS certificate reports.",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(TrustedHostMiddleware, allowed_hosts=ALLOWED_HOSTS)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type"],
    max_age=3600,
)
app.add_middleware(SlowAPIMiddleware)
app.state.limiter = limiter

app.include_router(secrets_router, prefix="/api/v1", tags=["Secrets"])


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    logger.info(
        "%s %s -> %d in %.1fms",
        request.method,
        request.url.path,
        response.status_code,
        (time.perf_counter() - start) * 1000,
    )
    return response


# ---------------------------------------------------------------------------
# Error envelope
# ---------------------------------------------------------------------------


def error_response(status_code: int, code: str, message: str, detail: Optional[str] = None) -> JSONResponse:
    body = ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail))
    return JSONResponse(status_code=status_code, content=body.model_dump())


@app.exception_handler(PsstError)
async def decode_error_handler(request: Request, exc: PsstError) -> JSONResponse:
    """404 when a requested key is absent, 400 for every other decoding failure."""
    status_code = 404 if isinstance(exc, NOT_FOUND_ERRORS) else 400
    error = exc.to_dict()
    logger.info("Decode failed on %s: %s %s", request.url.path, error["error_code"], error["message"])
    return error_response(status_code, error["error_code"], error["message"], error["error_type"])


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    response = error_response(429, "rate_limited", "Too many requests.", str(exc))
    response.headers["Retry-After"] = str(int(getattr(exc, "retry_after", 60)))
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(422, "validation_error", "Request validation failed.", str(exc.errors()))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Unexpected failures are logged with a traceback; the body stays generic."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return error_response(500, "internal_error", "An unexpected error occurred.")


@app.get("/api/v1/health", tags=["Health"])
async def health() -> HealthResponse:
    return HealthResponse(version=VERSION)
