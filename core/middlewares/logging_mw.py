"""Logging middleware: one audit event per HTTP request with status and latency."""

from __future__ import annotations

import logging
import time
from typing import Awaitable, Callable

from aiohttp import web

from core.audit import AuditLogger
from utils.helpers import format_duration

logger = logging.getLogger(__name__)

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def make_logging_middleware(audit: AuditLogger):
    @web.middleware
    async def logging_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
        start = time.monotonic()
        status = 500
        try:
            response = await handler(request)
            status = response.status
            return response
        except web.HTTPException as e:
            status = e.status
            raise
        finally:
            elapsed = time.monotonic() - start
            audit.emit(
                "http_request",
                method=request.method,
                path=request.path,
                remote_addr=request.remote,
                status=status,
                latency=format_duration(elapsed),
            )

    return logging_middleware
