"""FastAPI application entrypoint."""
from __future__ import annotations

import datetime as dt
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from loguru import logger

from agora.api.v1 import api_router
from agora.core.config import get_settings
from agora.core.database import dispose_engine, get_session_factory
from agora.core.health import build_health_payload
from agora.core.logging import RequestLoggingMiddleware, configure_logging, record_validation_error
from agora.core.metrics import CONTENT_TYPE_LATEST, render_metrics
from agora.services.nonce_store import NonceStore
from agora.services.revocation import RevocationLedger

configure_logging()
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    session_factory = get_session_factory()
    async with session_factory() as session:
        nonces = NonceStore(session, ttl=dt.timedelta(seconds=settings.nonce_ttl_seconds))
        await nonces.purge_expired()
        pruned = await RevocationLedger(session).prune_expired()
        if pruned:
            logger.bind(count=pruned).info("expired_revocations_pruned")
        await session.commit()
    yield
    await dispose_engine()


app = FastAPI(title="Agora Backend", version="1.0.0", lifespan=lifespan)

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    detail = exc.detail
    if isinstance(detail, dict) and "error" in detail:
        content = detail
    else:
        content = {"error": {"code": "http_error", "message": str(detail)}}
    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        request.state.error_detail = content["error"].get("code", "http_error")
    headers = exc.headers if exc.headers else None
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


def _jsonable_errors(exc: RequestValidationError) -> list[dict[str, object]]:
    # ``ctx`` may carry exception instances that are not JSON serialisable.
    return [{key: value for key, value in error.items() if key != "ctx"} for error in exc.errors()]


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    record_validation_error(request, "validation_error", exc.errors())
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": {
                "code": "validation_error",
                "message": "Request validation failed.",
                "details": _jsonable_errors(exc),
            }
        },
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    request.state.error_detail = exc.__class__.__name__
    logger.exception("Unhandled application error")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": {"code": "server_error", "message": "Internal server error."}},
    )


app.include_router(api_router)


@app.get("/health", tags=["health"], response_model=dict)
async def health() -> dict[str, object]:
    """Return infrastructure-focused health telemetry."""

    return await build_health_payload(settings.git_sha)


@app.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    """Expose Prometheus-formatted metrics."""

    return Response(content=render_metrics(), media_type=CONTENT_TYPE_LATEST)
