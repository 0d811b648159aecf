"""Error taxonomy for the inference layer.

Only :class:`InputError` ever reaches a caller: it signals a malformed
request (a programming error) and is raised by the prompt builder at
setup time.  Transport errors are raised by gateways and absorbed by
the orchestrator, which converts them into fallback results.
"""

from __future__ import annotations

__all__ = [
    "InputError",
    "TransportError",
    "GatewayTimeout",
    "RateLimited",
    "AuthError",
    "NetworkError",
]


class InputError(ValueError):
    """Raised when an inference request cannot be rendered into a prompt."""


class TransportError(Exception):
    """Base class for gateway failures.

    Subclasses set ``kind`` to the failure tag recorded on fallback
    results and inference events.
    """

    kind: str = "network"

    def __init__(self, message: str = "", *, status_code: int | None = None) -> None:
        super().__init__(message or self.kind)
        self.status_code = status_code


class GatewayTimeout(TransportError):
    kind = "timeout"


class RateLimited(TransportError):
    kind = "rate_limited"


class AuthError(TransportError):
    kind = "auth"


class NetworkError(TransportError):
    kind = "network"
