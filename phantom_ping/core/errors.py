"""
Error types raised by the echo engine.

    PingError
    +-- TransportUnavailable      raw socket could not be opened (privilege)
    +-- ClosedResource            operation on a closed session / socket
    +-- EchoTimeout               no matching reply within the timeout
    +-- AddressResolutionFailure  destination could not be resolved
"""


class PingError(Exception):
    """Base class for echo engine errors."""
    pass


class TransportUnavailable(PingError):
    """Raised when the raw socket cannot be opened."""
    pass


class ClosedResource(PingError):
    """Raised when a closed session or transport is used."""
    pass


class EchoTimeout(PingError):
    """Raised when no matching frame arrives before the deadline."""
    pass


class AddressResolutionFailure(PingError):
    """Raised when a destination cannot be resolved to a usable address."""
    pass
