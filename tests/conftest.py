"""Global fixtures for the command gateway test suite."""

import shutil
import uuid
from pathlib import Path
from typing import List, Optional, Tuple

import pytest

from core.catalog import CommandCatalog, CommandSpec
from core.errors import TransportError
from core.protocol import ExecuteResponse


# ── Catalogs ──


def make_catalog() -> CommandCatalog:
    return CommandCatalog(
        [
            CommandSpec(name="ls", description="List directory contents", allowed_args=("-l", "-a", "/tmp")),
            CommandSpec(name="echo", description="Display text", allowed_args=("hello", "world")),
            CommandSpec(name="uptime", description="Show uptime"),
            CommandSpec(name="sh", description="Shell for tests", allowed_args=("-c", "exit 1", "exit 0", "sleep 10")),
            CommandSpec(name="sleep", description="Sleep", allowed_args=("0.2", "5", "10")),
        ]
    )


@pytest.fixture
def catalog() -> CommandCatalog:
    return make_catalog()


# ── Sockets ──


@pytest.fixture
def socket_path():
    # AF_UNIX path length is tight on macOS; keep test sockets in /tmp.
    parent = Path("/tmp") / f"cmd-gateway-test-{uuid.uuid4().hex[:8]}"
    parent.mkdir(mode=0o700, exist_ok=True)
    yield parent / "exec.sock"
    shutil.rmtree(parent, ignore_errors=True)


# ── FakeClient ──


class FakeClient:
    """Test double for SystemServiceClient that records calls."""

    def __init__(self, response: Optional[ExecuteResponse] = None, error: Optional[TransportError] = None):
        self.socket_path = "/tmp/fake.sock"
        self.response = response or ExecuteResponse(success=True, exit_code=0, outcome="success")
        self.error = error
        self.probe_ok = True
        self.closed = False
        self.calls: List[Tuple[str, List[str], int, Optional[float]]] = []

    async def execute(self, command, args, timeout, deadline_seconds=None):
        self.calls.append((command, list(args), timeout, deadline_seconds))
        if self.error is not None:
            raise self.error
        return self.response

    async def probe(self, timeout_seconds=1.0):
        return self.probe_ok

    async def close(self):
        self.closed = True


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()
