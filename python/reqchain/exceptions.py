"""Exception classes raised by reqchain.

`ConfigurationError` and `MisuseError` signal programming errors and are never turned into a failed `Result`.
`TransportError` and `MiddlewareError` travel through the middleware chain, where any enclosing middleware may
recover them, and reach the caller as `Err` from the safe call shape.
"""

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from reqchain.context import Context


class ReqchainError(Exception):
    """Base class for all reqchain errors."""

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ConfigurationError(ReqchainError):
    """Invalid client construction, e.g. missing adapter or malformed middleware spec."""


class MisuseError(ReqchainError):
    """Pipeline contract violated, e.g. a continuation was run twice."""


class _ContextError(ReqchainError):
    def __init__(
        self,
        message: str,
        *,
        context: "Context | None" = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details=details)
        self.context = context


class TransportError(_ContextError):
    """Network or adapter failure."""


class ConnectError(TransportError):
    """Connection could not be established (refused, DNS failure)."""


class RequestTimeoutError(TransportError, TimeoutError):
    """Request did not complete in time."""


class TLSError(TransportError):
    """TLS handshake or certificate verification failed."""


class MiddlewareError(_ContextError):
    """Domain-specific failure signalled by a middleware, e.g. failed auth."""


class StatusError(MiddlewareError):
    """Response status is 4xx or 5xx and error_for_status is enabled."""


__all__ = [
    "ConfigurationError",
    "ConnectError",
    "MiddlewareError",
    "MisuseError",
    "ReqchainError",
    "RequestTimeoutError",
    "StatusError",
    "TLSError",
    "TransportError",
]
