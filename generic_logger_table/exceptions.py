"""
Custom exceptions used by the logger table client.

Keeping library-specific errors in one module gives users a predictable
import surface for catching and handling failed entry operations.
"""


class LoggerTableError(Exception):
    """Base error type for all library-level exceptions."""


class InvalidArgumentError(LoggerTableError, ValueError):
    """
    Raised when an entry operation is called with an invalid argument.

    Validation happens before any transport is touched, so this error is also
    raised by the non-throwing ``try_*`` operations.
    """


class OperationFailedError(LoggerTableError):
    """
    Raised by throwing entry operations when the selected strategy failed.

    The message carries the human-readable reason reported by the strategy.
    """


class ProtocolMismatchError(OperationFailedError):
    """
    Raised when a remote reply is not of the expected result type.

    Parameters
    ----------
    expected:
        Name of the result type the caller was waiting for.
    actual:
        Name of the type that was actually received.
    """

    def __init__(self, expected: str, actual: str) -> None:
        super().__init__(f"Received response is not of type {expected} (got {actual}).")
        self.expected = expected
        self.actual = actual


class TransportFailureError(LoggerTableError):
    """
    Raised when a message or query transport cannot complete a call.

    Covers connectivity failures, serialization failures and timeouts.
    """


class TransportTimeoutError(TransportFailureError):
    """Raised when no reply arrived within the configured timeout."""


class ProtocolDecodeError(TransportFailureError):
    """
    Raised when an incoming frame is malformed or cannot be decoded.

    This typically indicates wire corruption, cross-version incompatibility,
    or non-element traffic reaching the TCP listener.
    """


class ProtocolVersionError(TransportFailureError):
    """
    Raised when an incoming envelope uses an incompatible protocol version.
    """


class AuthenticationError(TransportFailureError):
    """
    Raised when envelope authentication fails.

    Authentication can fail because the signature is missing, malformed, or
    computed using a different shared token.
    """


class UnknownMessageTypeError(ProtocolDecodeError):
    """Raised when a payload names a message type missing from the registry."""


class ConfigurationError(LoggerTableError, ValueError):
    """Raised when client or transport configuration is inconsistent."""


class TransportNotAvailableError(LoggerTableError):
    """
    Raised when a transport requires an optional package that is not installed.
    """
