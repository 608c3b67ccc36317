"""Map execution-service replies onto external HTTP responses.

Statuses are chosen from the tagged ``outcome`` / ``violation`` fields only.
Policy details are passed through (the caller already knows what it sent);
timeout, spawn and transport errors are replaced by generic text because the
underlying messages can expose paths and OS internals.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict, Tuple

from core.errors import RpcDeadlineExceeded, TransportError
from core.protocol import ExecuteResponse
from core.system_executor import OutcomeKind

MSG_TIMEOUT = "command execution timed out"
MSG_EXECUTION_FAILED = "execution failed"
MSG_DAEMON_UNAVAILABLE = "daemon connection failed"


@dataclass
class ExecuteBody:
    success: bool
    exit_code: int = 0
    stdout: str = ""
    stderr: str = ""
    execution_time: str = ""
    error: str = ""

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


def map_execute_response(resp: ExecuteResponse) -> Tuple[int, ExecuteBody]:
    if resp.success:
        # The command's own exit status lives in the body, never in the HTTP status.
        return 200, ExecuteBody(
            success=True,
            exit_code=resp.exit_code,
            stdout=resp.stdout,
            stderr=resp.stderr,
            execution_time=resp.execution_time,
        )

    if resp.violation_kind is not None:
        return 403, ExecuteBody(success=False, error=resp.error_message)

    if resp.outcome_kind == OutcomeKind.TIMEOUT:
        return 408, ExecuteBody(
            success=False,
            exit_code=resp.exit_code,
            stdout=resp.stdout,
            stderr=resp.stderr,
            execution_time=resp.execution_time,
            error=MSG_TIMEOUT,
        )

    return 500, ExecuteBody(
        success=False,
        exit_code=resp.exit_code,
        execution_time=resp.execution_time,
        error=MSG_EXECUTION_FAILED,
    )


def map_transport_error(err: TransportError) -> Tuple[int, ExecuteBody]:
    if isinstance(err, RpcDeadlineExceeded):
        return 408, ExecuteBody(success=False, error=MSG_TIMEOUT)
    return 503, ExecuteBody(success=False, error=MSG_DAEMON_UNAVAILABLE)


def malformed(message: str) -> Tuple[int, ExecuteBody]:
    return 400, ExecuteBody(success=False, error=str(message))
