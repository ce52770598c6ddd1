"""Custom exceptions for the QMI NAS client layer.

This module defines the exception hierarchy shared by the transport
abstraction and the TNS workers. Errors are handled at the lowest layer
that can recover from them; none of these is expected to cross a thread
boundary.
"""

from typing import Optional


class TnsProbeError(Exception):
    """Base exception for all tnsprobe errors."""

    pass


class TransportError(TnsProbeError):
    """Raised when the vendor client fails to send or receive a message."""

    def __init__(self, message: str, code: Optional[int] = None):
        self.code = code
        if code is not None:
            super().__init__(f"{message} (err={code})")
        else:
            super().__init__(message)


class DecodeError(TnsProbeError):
    """Raised when an indication payload cannot be decoded."""

    def __init__(self, message_id: int, reason: str):
        self.message_id = message_id
        self.reason = reason
        super().__init__(f"Failed to decode msg_id=0x{message_id:04X}: {reason}")


class ServiceUnavailableError(TnsProbeError):
    """Raised when the NAS service object or a client cannot be obtained."""

    def __init__(self, service: str, message: Optional[str] = None):
        self.service = service
        if message:
            super().__init__(f"{service} service not available: {message}")
        else:
            super().__init__(f"{service} service not available")


class RetryExhaustedError(TnsProbeError):
    """All sync pulse configuration attempts failed."""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"Sync pulse configuration failed after {attempts} attempt(s)")


class ConfigurationError(TnsProbeError):
    """Raised for invalid runtime settings files."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        if path:
            super().__init__(f"Invalid settings in {path}: {message}")
        else:
            super().__init__(message)
