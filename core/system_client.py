"""Client for the execution service over the local Unix socket."""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Sequence, Set

from core.errors import ProtocolError, RpcDeadlineExceeded, TransportError
from core.protocol import ExecuteRequest, ExecuteResponse, decode_frame, encode_frame
from utils.constants import DEFAULT_MAX_RESPONSE_BYTES

logger = logging.getLogger(__name__)


class SystemServiceClient:
    """Issue Execute calls; one fresh connection per call.

    A failed call never marks the service dead: the next call simply dials
    again. Every failure below the application level raises
    :class:`TransportError`; policy rejections come back as a normal
    :class:`ExecuteResponse`.
    """

    def __init__(
        self,
        socket_path: str,
        connect_timeout_seconds: float = 5.0,
        max_response_bytes: int = DEFAULT_MAX_RESPONSE_BYTES,
    ):
        self.socket_path = str(socket_path)
        self.connect_timeout_seconds = float(connect_timeout_seconds)
        self.max_response_bytes = max(1024, int(max_response_bytes))
        self._writers: Set[asyncio.StreamWriter] = set()
        self._closed = False

    @staticmethod
    def _exc_text(err: BaseException) -> str:
        text = str(err or "").strip()
        if text:
            return text
        return err.__class__.__name__

    async def execute(
        self,
        command: str,
        args: Sequence[str],
        timeout: int,
        deadline_seconds: Optional[float] = None,
    ) -> ExecuteResponse:
        """Send one Execute call and wait for its reply.

        ``deadline_seconds`` bounds the whole exchange; when it elapses the
        connection is dropped, which makes the service abort the run.
        """
        request = ExecuteRequest(command=command, args=list(args), timeout=int(timeout))
        if deadline_seconds is None:
            return await self._call(request)
        try:
            return await asyncio.wait_for(self._call(request), timeout=deadline_seconds)
        except asyncio.TimeoutError:
            raise RpcDeadlineExceeded(f"no reply within {deadline_seconds:.1f}s") from None

    async def probe(self, timeout_seconds: float = 1.0) -> bool:
        """Liveness check with a deliberately invalid call.

        The empty command is always rejected by policy. Getting that rejection
        back means the channel works; only a transport failure means the
        service is unreachable.
        """
        try:
            await self.execute("", [], 1, deadline_seconds=timeout_seconds)
        except TransportError as e:
            logger.debug("Execution service probe failed: %s", e.reason)
            return False
        return True

    async def close(self) -> None:
        self._closed = True
        writers: List[asyncio.StreamWriter] = list(self._writers)
        for writer in writers:
            try:
                writer.close()
            except Exception:
                pass
        self._writers.clear()

    async def _call(self, request: ExecuteRequest) -> ExecuteResponse:
        if self._closed:
            raise TransportError("client_closed")
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_unix_connection(self.socket_path, limit=self.max_response_bytes),
                timeout=self.connect_timeout_seconds,
            )
        except asyncio.TimeoutError:
            raise TransportError("connect_failed:timeout") from None
        except OSError as e:
            raise TransportError(f"connect_failed:{self._exc_text(e)}") from e

        self._writers.add(writer)
        try:
            writer.write(encode_frame(request.to_wire()))
            await writer.drain()
            try:
                raw = await reader.readline()
            except ValueError:
                raise TransportError("response_too_large") from None
            if not raw:
                raise TransportError("empty_response")
            try:
                envelope = decode_frame(raw)
            except ProtocolError as e:
                raise TransportError(f"response_decode_failed:{e}") from e
            if envelope.get("ok") is not True:
                raise TransportError(str(envelope.get("reason") or "request_failed"))
            try:
                return ExecuteResponse.from_wire(envelope.get("result"))
            except ProtocolError as e:
                raise TransportError(f"response_invalid:{e}") from e
        except (ConnectionError, OSError) as e:
            raise TransportError(f"request_failed:{self._exc_text(e)}") from e
        finally:
            self._writers.discard(writer)
            try:
                writer.close()
                await writer.wait_closed()
            except Exception:
                pass
