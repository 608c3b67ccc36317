"""Wire schema for the Execute call on the local Unix socket.

One JSON object per line, one request and one reply per connection. Replies
are wrapped in an envelope so protocol failures (``{"ok": false, "reason":
...}``) stay distinguishable from application answers (``{"ok": true,
"result": {...}}``), including policy rejections.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional

from core.errors import ProtocolError
from core.system_executor import ExecutionResult, OutcomeKind
from core.validator import Violation, ViolationKind

METHOD_EXECUTE = "Execute"
OUTCOME_REJECTED = "rejected"

_INT32_MIN = -(2 ** 31)
_INT32_MAX = 2 ** 31 - 1


def encode_frame(payload: Dict[str, object]) -> bytes:
    wire = json.dumps(payload, ensure_ascii=False, separators=(",", ":")) + "\n"
    return wire.encode("utf-8")


def decode_frame(raw: bytes) -> Dict[str, object]:
    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise ProtocolError(f"frame_decode_failed:{e}") from e
    if not isinstance(data, dict):
        raise ProtocolError("frame_not_object")
    return data


def error_envelope(reason: str) -> Dict[str, object]:
    return {"ok": False, "reason": str(reason)}


def result_envelope(response: "ExecuteResponse") -> Dict[str, object]:
    return {"ok": True, "result": response.to_wire()}


@dataclass
class ExecuteRequest:
    command: str
    args: List[str] = field(default_factory=list)
    timeout: int = 0

    def to_wire(self) -> Dict[str, object]:
        return {
            "method": METHOD_EXECUTE,
            "command": self.command,
            "args": list(self.args),
            "timeout": int(self.timeout),
        }

    @classmethod
    def from_wire(cls, data: Dict[str, object]) -> "ExecuteRequest":
        method = data.get("method", METHOD_EXECUTE)
        if method != METHOD_EXECUTE:
            raise ProtocolError(f"unknown_method:{method}")
        command = data.get("command", "")
        if not isinstance(command, str):
            raise ProtocolError("command_not_string")
        args = data.get("args")
        if args is None:
            args = []
        if not isinstance(args, list) or not all(isinstance(a, str) for a in args):
            raise ProtocolError("args_not_string_list")
        timeout = data.get("timeout", 0)
        if timeout is None:
            timeout = 0
        if isinstance(timeout, bool) or not isinstance(timeout, int):
            raise ProtocolError("timeout_not_integer")
        if not _INT32_MIN <= timeout <= _INT32_MAX:
            raise ProtocolError("timeout_out_of_range")
        return cls(command=command, args=list(args), timeout=timeout)


@dataclass
class ExecuteResponse:
    """Reply to Execute.

    ``success`` is true only when the process ran to exit (any exit status).
    ``outcome`` / ``violation`` carry the classification as data so nobody has
    to parse ``error_message``.
    """

    success: bool
    exit_code: int = 0
    stdout: str = ""
    stderr: str = ""
    execution_time: str = ""
    error_message: str = ""
    outcome: str = OUTCOME_REJECTED
    violation: Optional[str] = None

    @classmethod
    def from_result(cls, result: ExecutionResult) -> "ExecuteResponse":
        return cls(
            success=result.completed,
            exit_code=int(result.exit_code),
            stdout=result.stdout,
            stderr=result.stderr,
            execution_time=result.execution_time,
            error_message=result.error or "",
            outcome=result.outcome.value,
        )

    @classmethod
    def rejected(cls, violation: Violation) -> "ExecuteResponse":
        return cls(
            success=False,
            error_message=violation.detail,
            outcome=OUTCOME_REJECTED,
            violation=violation.kind.value,
        )

    @property
    def outcome_kind(self) -> Optional[OutcomeKind]:
        try:
            return OutcomeKind(self.outcome)
        except ValueError:
            return None

    @property
    def violation_kind(self) -> Optional[ViolationKind]:
        if self.violation is None:
            return None
        try:
            return ViolationKind(self.violation)
        except ValueError:
            return None

    def to_wire(self) -> Dict[str, object]:
        return asdict(self)

    @classmethod
    def from_wire(cls, data: object) -> "ExecuteResponse":
        if not isinstance(data, dict):
            raise ProtocolError("result_not_object")
        success = data.get("success")
        if not isinstance(success, bool):
            raise ProtocolError("result_success_not_bool")
        exit_code = data.get("exit_code", 0)
        if isinstance(exit_code, bool) or not isinstance(exit_code, int):
            raise ProtocolError("result_exit_code_not_integer")
        violation = data.get("violation")
        return cls(
            success=success,
            exit_code=exit_code,
            stdout=str(data.get("stdout") or ""),
            stderr=str(data.get("stderr") or ""),
            execution_time=str(data.get("execution_time") or ""),
            error_message=str(data.get("error_message") or ""),
            outcome=str(data.get("outcome") or OUTCOME_REJECTED),
            violation=None if violation is None else str(violation),
        )
