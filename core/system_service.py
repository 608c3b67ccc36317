"""Execution service: Unix socket RPC front of the validator and the executor."""

from __future__ import annotations

import asyncio
import logging
import os
import stat
from pathlib import Path
from typing import Dict, Optional, Set, Union

from core.audit import AuditLogger
from core.catalog import CommandCatalog
from core.errors import ProtocolError
from core.protocol import (
    ExecuteRequest,
    ExecuteResponse,
    decode_frame,
    encode_frame,
    error_envelope,
    result_envelope,
)
from core.system_executor import CommandExecutor, OutcomeKind
from core.validator import validate_command
from utils.constants import (
    DEFAULT_MAX_REQUEST_BYTES,
    DEFAULT_MAX_RESPONSE_BYTES,
    DEFAULT_SERVICE_REQUEST_TIMEOUT,
    DEFAULT_SHUTDOWN_GRACE_SECONDS,
    DEFAULT_SOCKET_PERMISSIONS,
)

logger = logging.getLogger(__name__)


class SystemServiceServer:
    """Validate and execute Execute calls received on a Unix socket.

    The socket file and its permission bits are the access-control gate: any
    process able to open the socket can issue execution requests.
    """

    def __init__(
        self,
        *,
        socket_path: str,
        catalog: CommandCatalog,
        executor: CommandExecutor,
        audit: Optional[AuditLogger] = None,
        request_timeout_seconds: float = DEFAULT_SERVICE_REQUEST_TIMEOUT,
        max_request_bytes: int = DEFAULT_MAX_REQUEST_BYTES,
        max_response_bytes: int = DEFAULT_MAX_RESPONSE_BYTES,
        shutdown_grace_seconds: float = DEFAULT_SHUTDOWN_GRACE_SECONDS,
        socket_mode: Optional[Union[int, str]] = DEFAULT_SOCKET_PERMISSIONS,
        socket_uid: Optional[int] = None,
        socket_gid: Optional[int] = None,
    ):
        self.socket_path = str(socket_path)
        self.catalog = catalog
        self.executor = executor
        self.audit = audit or AuditLogger(mode="daemon")
        self.request_timeout_seconds = float(request_timeout_seconds)
        self.max_request_bytes = max(1024, int(max_request_bytes))
        self.max_response_bytes = max(1024, int(max_response_bytes))
        self.shutdown_grace_seconds = max(0.0, float(shutdown_grace_seconds))
        self.socket_mode = self._normalize_mode(socket_mode)
        self.socket_uid = None if socket_uid is None else int(socket_uid)
        self.socket_gid = None if socket_gid is None else int(socket_gid)
        self._server: Optional[asyncio.AbstractServer] = None
        self._connections: Dict[asyncio.StreamWriter, "asyncio.Task[None]"] = {}
        self._busy: Set[asyncio.StreamWriter] = set()
        self._stopping = False

    async def start(self) -> None:
        self._stopping = False
        Path(self.socket_path).parent.mkdir(parents=True, exist_ok=True)
        self._remove_existing_socket(require_socket_type=True)
        self._server = await asyncio.start_unix_server(
            self._handle_conn,
            path=self.socket_path,
            limit=self.max_request_bytes,
        )
        self._apply_socket_permissions()
        logger.info(
            "Execution service bound to %s (mode=%s, commands=%d)",
            self.socket_path,
            oct(self.socket_mode) if self.socket_mode is not None else None,
            len(self.catalog),
        )

    async def stop(self) -> None:
        """Stop accepting, let in-flight calls finish within the grace period, then clean up."""
        self._stopping = True
        srv = self._server
        if srv:
            srv.close()

        # Connections still waiting for a request frame have nothing in flight.
        for writer in [w for w in self._connections if w not in self._busy]:
            try:
                writer.close()
            except Exception:
                pass

        busy_tasks = [self._connections[w] for w in self._busy if w in self._connections]
        if busy_tasks:
            logger.info("Waiting up to %.1fs for %d in-flight call(s)", self.shutdown_grace_seconds, len(busy_tasks))
            if self.shutdown_grace_seconds > 0:
                _done, pending = await asyncio.wait(busy_tasks, timeout=self.shutdown_grace_seconds)
            else:
                pending = set(busy_tasks)
            for task in pending:
                task.cancel()
            if pending:
                logger.warning("Cancelled %d call(s) still running after grace period", len(pending))

        remaining = list(self._connections.values())
        if remaining:
            await asyncio.wait(remaining, timeout=2.0)
        self._connections.clear()
        self._busy.clear()

        if srv:
            try:
                await asyncio.wait_for(srv.wait_closed(), timeout=2.0)
            except asyncio.TimeoutError:
                logger.warning("Timed out waiting for listener to close")
            self._server = None

        try:
            self._remove_existing_socket(require_socket_type=True)
        except RuntimeError as e:
            logger.warning("Socket cleanup skipped: %s", e)

    async def handle_execute(self, request: ExecuteRequest) -> ExecuteResponse:
        """Validate, then (only if accepted) execute; audit after the outcome is known."""
        self.audit.emit(
            "command_request",
            level=logging.DEBUG,
            command=request.command,
            args=request.args,
            timeout=request.timeout,
        )
        violation = validate_command(request.command, request.args, self.catalog)
        if violation is not None:
            self.audit.emit(
                "command_rejected",
                level=logging.WARNING,
                command=request.command,
                args=request.args,
                violation=violation.kind.value,
                error=violation.detail,
            )
            return ExecuteResponse.rejected(violation)

        timeout = self.executor.resolve_timeout(request.timeout)
        result = await self.executor.execute(request.command, request.args, timeout)

        if result.completed:
            level = logging.INFO
        elif result.outcome == OutcomeKind.TIMEOUT:
            level = logging.WARNING
        else:
            level = logging.ERROR
        self.audit.emit(
            "command_executed",
            level=level,
            command=request.command,
            args=request.args,
            timeout=timeout,
            exit_code=result.exit_code,
            execution_time=result.execution_time,
            outcome=result.outcome.value,
            error=result.error,
        )
        return ExecuteResponse.from_result(result)

    async def _handle_conn(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        if self._stopping:
            await self._close_writer(writer)
            return

        self._connections[writer] = asyncio.current_task()
        try:
            try:
                raw = await asyncio.wait_for(reader.readline(), timeout=self.request_timeout_seconds)
            except ValueError:
                # StreamReader limit overrun: the line is longer than max_request_bytes.
                await self._reply(writer, error_envelope("request_too_large"))
                return
            except asyncio.TimeoutError:
                await self._reply(writer, error_envelope("request_timeout"))
                return
            if not raw:
                if not self._stopping:
                    await self._reply(writer, error_envelope("empty_request"))
                return
            if len(raw) > self.max_request_bytes:
                await self._reply(writer, error_envelope("request_too_large"))
                return
            try:
                data = decode_frame(raw)
            except ProtocolError as e:
                await self._reply(writer, error_envelope(f"request_decode_failed:{e}"))
                return
            try:
                request = ExecuteRequest.from_wire(data)
            except ProtocolError as e:
                await self._reply(writer, error_envelope(f"request_invalid:{e}"))
                return

            self._busy.add(writer)
            response = await self._execute_until_disconnect(reader, request)
            if response is None:
                return
            frame = encode_frame(result_envelope(response))
            if len(frame) > self.max_response_bytes:
                logger.warning(
                    "Response for %s is %d bytes, over limit %d",
                    request.command,
                    len(frame),
                    self.max_response_bytes,
                )
                frame = encode_frame(error_envelope("response_too_large"))
            writer.write(frame)
            await writer.drain()
        except ConnectionError as e:
            logger.debug("Connection dropped before reply: %s", e)
        except Exception as e:
            logger.exception("Execute handler failed")
            try:
                await self._reply(writer, error_envelope(f"handler_error:{e.__class__.__name__}"))
            except Exception:
                pass
        finally:
            self._busy.discard(writer)
            self._connections.pop(writer, None)
            await self._close_writer(writer)

    async def _execute_until_disconnect(
        self,
        reader: asyncio.StreamReader,
        request: ExecuteRequest,
    ) -> Optional[ExecuteResponse]:
        """Run the call, aborting it if the caller hangs up first."""
        exec_task = asyncio.create_task(self.handle_execute(request))
        eof_task = asyncio.create_task(reader.read(1))
        try:
            done, _ = await asyncio.wait({exec_task, eof_task}, return_when=asyncio.FIRST_COMPLETED)
            if exec_task not in done:
                hung_up = True
                try:
                    hung_up = eof_task.result() == b""
                except (ConnectionError, OSError):
                    pass
                if not hung_up:
                    # Stray bytes after the request line; the caller is still there.
                    return await exec_task
                exec_task.cancel()
                try:
                    await exec_task
                except asyncio.CancelledError:
                    pass
                self.audit.emit(
                    "command_cancelled",
                    level=logging.WARNING,
                    command=request.command,
                    args=request.args,
                    error="caller disconnected",
                )
                return None
            return exec_task.result()
        except asyncio.CancelledError:
            exec_task.cancel()
            raise
        finally:
            if not eof_task.done():
                eof_task.cancel()

    async def _reply(self, writer: asyncio.StreamWriter, payload: Dict[str, object]) -> None:
        writer.write(encode_frame(payload))
        await writer.drain()

    @staticmethod
    async def _close_writer(writer: asyncio.StreamWriter, timeout: float = 2.0) -> None:
        try:
            writer.close()
            await asyncio.wait_for(writer.wait_closed(), timeout=timeout)
        except Exception:
            pass

    @staticmethod
    def _normalize_mode(mode: Optional[Union[int, str]]) -> Optional[int]:
        if mode is None:
            return None
        if isinstance(mode, int):
            return mode
        text = str(mode).strip().lower()
        if not text:
            return None
        if text.startswith("0o"):
            text = text[2:]
        if text.startswith("0") and len(text) > 1:
            text = text[1:]
        return int(text, 8)

    def _apply_socket_permissions(self) -> None:
        p = Path(self.socket_path)
        if self.socket_mode is not None:
            os.chmod(p, self.socket_mode)
        if self.socket_uid is not None or self.socket_gid is not None:
            os.chown(
                p,
                self.socket_uid if self.socket_uid is not None else -1,
                self.socket_gid if self.socket_gid is not None else -1,
            )

    def _remove_existing_socket(self, *, require_socket_type: bool) -> None:
        p = Path(self.socket_path)
        try:
            st = os.lstat(p)
        except FileNotFoundError:
            return
        if require_socket_type and not stat.S_ISSOCK(st.st_mode):
            raise RuntimeError(f"socket_path_not_socket:{self.socket_path}")
        try:
            os.unlink(p)
        except FileNotFoundError:
            return
