"""Error taxonomy for the gateway.

Every failure a request can hit maps to exactly one of these classes. The
dispatcher turns them into error envelopes; anything else is treated as an
internal error.
"""

from typing import Optional


class GatewayError(Exception):
    """Base class for all gateway errors.

    Attributes:
        message: Human-readable message returned to the caller
        cause: Originating exception, kept for diagnostics only
        status_code: HTTP status used when the error reaches the transport
    """

    status_code = 400

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        return self.message


class ProtocolError(GatewayError):
    """Malformed envelope or unknown method."""
    pass


class UnsupportedOperation(ProtocolError):
    """Method is part of the protocol but has no implementation yet."""
    pass


class ValidationError(GatewayError):
    """Well-formed envelope with invalid parameter values."""
    pass


class DerivationError(GatewayError):
    """Master secret is missing, malformed or cannot produce keys.

    Raised at startup; the process must not start serving after it.
    """

    status_code = 500


class CollaboratorError(GatewayError):
    """Jupiter or Solana RPC call failed."""
    pass


class ActorUnavailable(GatewayError):
    """The blockhash actor has terminated or did not answer in time."""
    pass
