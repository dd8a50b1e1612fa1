"""Loguru setup, request logging and log-safe formatting of identities."""
from __future__ import annotations

import sys
import time
import uuid
from collections.abc import MutableMapping
from typing import Any

from fastapi import Request
from loguru import logger
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from agora.core.config import get_settings
from agora.core.metrics import observe_request


def configure_logging() -> None:
    """Replace loguru's default sink with single-line JSON on stdout."""

    logger.remove()
    logger.add(sys.stdout, level=get_settings().log_level.upper(), serialize=True, enqueue=True)


def _route_template(scope: Scope) -> str:
    # Label metrics by route pattern so path parameters do not explode cardinality.
    route = scope.get("route")
    return str(getattr(route, "path", scope.get("path", "")))


class RequestLoggingMiddleware:
    """Log one ``request_completed`` line per HTTP request and record its latency."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        state: MutableMapping[str, Any] = scope.setdefault("state", {})
        state["request_id"] = uuid.uuid4().hex
        started = time.perf_counter()

        async def send_and_log(message: Message) -> None:
            if message["type"] == "http.response.start":
                elapsed = time.perf_counter() - started
                status_code = int(message["status"])
                method = scope.get("method", "")
                observe_request(_route_template(scope), method, status_code, elapsed)
                logger.bind(
                    request_id=state["request_id"],
                    method=method,
                    path=scope.get("path", ""),
                    status_code=status_code,
                    latency_ms=round(elapsed * 1000, 2),
                    user_id=state.get("user_id"),
                    error=state.get("error_detail"),
                ).info("request_completed")
            await send(message)

        try:
            await self.app(scope, receive, send_and_log)
        except Exception as exc:
            logger.bind(request_id=state["request_id"], path=scope.get("path", "")).exception(
                f"request_failed: {exc.__class__.__name__}"
            )
            raise


def mask_email(email: str) -> str:
    """Keep the first and last character of the mailbox name."""

    name, at, domain = email.partition("@")
    if not at:
        return email
    if len(name) <= 2:
        return f"{name[:1]}{'*' * (len(name) - 1)}@{domain}"
    return f"{name[0]}{'*' * (len(name) - 2)}{name[-1]}@{domain}"


def mask_address(address: str) -> str:
    """Shorten a wallet address to its head and tail."""

    if len(address) <= 12:
        return address
    return f"{address[:6]}...{address[-4:]}"


def record_validation_error(request: Request, error: str, details: Any | None = None) -> None:
    logger.bind(
        path=request.url.path,
        method=request.method,
        request_id=getattr(request.state, "request_id", None),
        details=details,
    ).warning(error)
