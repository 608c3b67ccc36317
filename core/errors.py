"""Error taxonomy shared by the gateway and the execution service.

Policy rejections and execution outcomes are *not* exceptions: they travel as
``ViolationKind`` / ``OutcomeKind`` values. Only malformed input and failures of
the local transport are raised.
"""

from __future__ import annotations


class GatewayError(Exception):
    """Base class for command gateway errors."""


class CatalogError(GatewayError):
    """The configured command catalog is unusable."""


class MalformedInputError(GatewayError):
    """External request has the wrong shape."""


class ProtocolError(GatewayError):
    """A frame on the local socket does not match the Execute schema."""


class TransportError(GatewayError):
    """Execution service unreachable or the exchange failed below the application level."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = str(reason)


class RpcDeadlineExceeded(TransportError):
    """The caller-side deadline elapsed before the service replied."""

    def __init__(self, reason: str = "deadline_exceeded"):
        super().__init__(reason)
