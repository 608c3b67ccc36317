"""
Centralized constants for the command gateway.

Collects defaults and limits shared by the gateway and the execution service.
"""

# ── Unix socket ──
DEFAULT_SOCKET_PATH = "/var/run/cmd-gateway.sock"
DEFAULT_SOCKET_PERMISSIONS = "0660"  # rw-rw----

# ── Execution service limits ──
DEFAULT_MAX_EXECUTION_TIME = 300  # seconds
DEFAULT_EXEC_TIMEOUT = 30  # seconds, used when a request carries none
DEFAULT_SERVICE_REQUEST_TIMEOUT = 15.0  # seconds to read one request frame
DEFAULT_SHUTDOWN_GRACE_SECONDS = 10.0

# ── Wire limits (asymmetric on purpose) ──
DEFAULT_MAX_REQUEST_BYTES = 1024 * 1024  # 1 MiB
DEFAULT_MAX_RESPONSE_BYTES = 10 * 1024 * 1024  # 10 MiB

# ── Gateway ──
DEFAULT_LISTEN_ADDRESS = ":8080"
DEFAULT_GATEWAY_MAX_TIMEOUT = 300  # seconds, checked before forwarding
DEFAULT_REQUEST_TIMEOUT = 60  # seconds, caps the client connect timeout
DEFAULT_MAX_BODY_SIZE = 1024 * 1024  # 1 MiB
DEFAULT_RPC_GRACE_SECONDS = 2.0
READY_PROBE_TIMEOUT = 1.0

# ── Config file locations ──
DEFAULT_DAEMON_CONFIG = "/etc/cmd-gateway/daemon.yaml"
DEFAULT_API_CONFIG = "/etc/cmd-gateway/api.yaml"

LOG_LEVELS = ("debug", "info", "warning", "error")
