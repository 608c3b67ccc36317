"""HTTP gateway: shape checks, forwarding to the execution service, status mapping."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from aiohttp import web

from core.audit import AuditLogger
from core.catalog import CommandCatalog
from core.errors import MalformedInputError, TransportError
from core.middlewares.logging_mw import make_logging_middleware
from core.responses import malformed, map_execute_response, map_transport_error
from core.system_client import SystemServiceClient
from utils.constants import (
    DEFAULT_EXEC_TIMEOUT,
    DEFAULT_GATEWAY_MAX_TIMEOUT,
    DEFAULT_MAX_BODY_SIZE,
    DEFAULT_RPC_GRACE_SECONDS,
    READY_PROBE_TIMEOUT,
)

logger = logging.getLogger(__name__)


@dataclass
class GatewayRequest:
    command: str
    args: List[str] = field(default_factory=list)
    timeout: int = DEFAULT_EXEC_TIMEOUT


def parse_execute_request(
    payload,
    *,
    default_timeout: int = DEFAULT_EXEC_TIMEOUT,
    max_timeout: int = DEFAULT_GATEWAY_MAX_TIMEOUT,
) -> GatewayRequest:
    """Check the shape of a decoded /execute body.

    Only shape is checked here; the allow-list lives in the execution service.
    The command is not trimmed: "ls " and "ls" are different commands.
    """
    if not isinstance(payload, dict):
        raise MalformedInputError("invalid request format")

    command = payload.get("command")
    if not isinstance(command, str) or command == "":
        raise MalformedInputError("command is not specified")

    args = payload.get("args")
    if args is None:
        args = []
    if not isinstance(args, list) or not all(isinstance(a, str) for a in args):
        raise MalformedInputError("args must be a list of strings")

    timeout = payload.get("timeout")
    if timeout is None:
        timeout = 0
    if isinstance(timeout, bool) or not isinstance(timeout, int):
        raise MalformedInputError("timeout must be an integer")
    if timeout <= 0:
        timeout = default_timeout
    if timeout > max_timeout:
        raise MalformedInputError(f"timeout must be {max_timeout} seconds or less")

    return GatewayRequest(command=command, args=list(args), timeout=timeout)


class GatewayApp:
    """aiohttp application exposing /execute, /commands, /health and /ready."""

    def __init__(
        self,
        client: SystemServiceClient,
        *,
        catalog: Optional[CommandCatalog] = None,
        default_timeout: int = DEFAULT_EXEC_TIMEOUT,
        max_timeout: int = DEFAULT_GATEWAY_MAX_TIMEOUT,
        rpc_grace_seconds: float = DEFAULT_RPC_GRACE_SECONDS,
        ready_probe_timeout: float = READY_PROBE_TIMEOUT,
        max_body_size: int = DEFAULT_MAX_BODY_SIZE,
        audit: Optional[AuditLogger] = None,
    ):
        self.client = client
        self.catalog = catalog if catalog is not None else CommandCatalog()
        self.default_timeout = int(default_timeout)
        self.max_timeout = int(max_timeout)
        self.rpc_grace_seconds = max(0.0, float(rpc_grace_seconds))
        self.ready_probe_timeout = float(ready_probe_timeout)
        self.max_body_size = int(max_body_size)
        self.audit = audit or AuditLogger(mode="api")

    def build(self) -> web.Application:
        app = web.Application(
            middlewares=[make_logging_middleware(self.audit)],
            client_max_size=self.max_body_size,
        )
        app.router.add_post("/execute", self.handle_execute)
        app.router.add_get("/commands", self.handle_commands)
        app.router.add_get("/health", self.handle_health)
        app.router.add_get("/ready", self.handle_ready)
        app.on_cleanup.append(self._on_cleanup)
        return app

    async def handle_execute(self, request: web.Request) -> web.Response:
        try:
            payload = await request.json()
        except ValueError:
            status, body = malformed("invalid request format")
            return web.json_response(body.to_dict(), status=status)

        try:
            req = parse_execute_request(
                payload,
                default_timeout=self.default_timeout,
                max_timeout=self.max_timeout,
            )
        except MalformedInputError as e:
            logger.info("Rejected malformed request: %s", e)
            status, body = malformed(str(e))
            return web.json_response(body.to_dict(), status=status)

        logger.info("Command request: %s %s (timeout: %ds)", req.command, req.args, req.timeout)
        try:
            resp = await self.client.execute(
                req.command,
                req.args,
                req.timeout,
                deadline_seconds=req.timeout + self.rpc_grace_seconds,
            )
        except TransportError as e:
            logger.warning("Execution service call failed: %s", e.reason)
            status, body = map_transport_error(e)
            return web.json_response(body.to_dict(), status=status)

        status, body = map_execute_response(resp)
        if status == 200:
            logger.info(
                "Command executed: %s %s (exit: %d, time: %s)",
                req.command,
                req.args,
                resp.exit_code,
                resp.execution_time,
            )
        else:
            logger.info("Command not completed: %s %s (status: %d)", req.command, req.args, status)
        return web.json_response(body.to_dict(), status=status)

    async def handle_commands(self, request: web.Request) -> web.Response:
        commands = self.catalog.projection()
        logger.debug("Commands list requested, returning %d commands", len(commands))
        return web.json_response({"commands": commands})

    async def handle_health(self, request: web.Request) -> web.Response:
        return web.Response(text="OK")

    async def handle_ready(self, request: web.Request) -> web.Response:
        if await self.client.probe(timeout_seconds=self.ready_probe_timeout):
            return web.Response(text="Ready")
        return web.Response(status=503, text="Daemon not ready")

    async def _on_cleanup(self, app: web.Application) -> None:
        await self.client.close()
