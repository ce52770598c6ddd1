"""Abstract QMI client transport.

This module defines the interface the TNS workers use to talk to the
modem's Network Access Service. Message encoding, the receive loop and
the service lookup all belong to the vendor client library; a concrete
binding subclasses :class:`QmiClient` and :class:`ServiceProvider`.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable, Mapping, Type, TypeVar

from tnsprobe.qmi.models import QmiResponse

T = TypeVar("T")

# (message_id, raw payload) delivered from the vendor receive thread
IndicationCallback = Callable[[int, bytes], None]

# (client, error) delivered when the vendor library reports a client error
ErrorCallback = Callable[["QmiClient", "ClientError"], None]

# Default synchronous request timeout in seconds
DEFAULT_SEND_TIMEOUT = 50.0


class ClientError:
    """Error codes reported through a client's error callback."""

    SERVICE_ERR = 1
    TIMEOUT_ERR = 2
    INTERNAL_ERR = 3

    def __init__(self, code: int, message: str = ""):
        self.code = code
        self.message = message

    @property
    def service_down(self) -> bool:
        """Whether the remote service went away."""
        return self.code == self.SERVICE_ERR

    def __repr__(self) -> str:
        return f"ClientError(code={self.code}, message={self.message!r})"


class QmiClient(ABC):
    """A connection to the modem's NAS service.

    Example:
        >>> client = provider.acquire("nas", on_indication)
        >>> client.subscribe(NAS_INDICATIONS)
        >>> response = client.send_request(
        ...     MessageId.SET_NR5G_SYNC_PULSE_GEN, config.to_request(), timeout=50.0
        ... )
        >>> client.release()
    """

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    def send_request(
        self,
        message_id: int,
        request: Mapping[str, Any],
        timeout: float = DEFAULT_SEND_TIMEOUT,
    ) -> QmiResponse:
        """Send a request and wait for its response.

        Raises:
            TransportError: If the request could not be exchanged.
        """

    @abstractmethod
    def subscribe(self, indication_ids: Iterable[int]) -> None:
        """Register for the given indications.

        Raises:
            TransportError: If registration fails or is rejected.
        """

    @abstractmethod
    def register_error_callback(self, callback: ErrorCallback) -> None:
        """Register a handler for asynchronous client errors."""

    @abstractmethod
    def decode(self, message_id: int, payload: bytes, shape: Type[T]) -> T:
        """Decode an indication payload into ``shape``.

        Raises:
            DecodeError: If the payload is malformed.
        """

    @abstractmethod
    def release(self) -> None:
        """Release the client. Safe to call more than once."""

    @property
    @abstractmethod
    def is_released(self) -> bool:
        """Check if the client has been released."""

    def __repr__(self) -> str:
        status = "released" if self.is_released else "active"
        return f"{type(self).__name__}(name={self.name!r}, {status})"


class ServiceProvider(ABC):
    """Source of NAS clients (the vendor service object)."""

    @abstractmethod
    def acquire(self, name: str, indication_callback: IndicationCallback) -> QmiClient:
        """Create a client delivering its indications to ``indication_callback``.

        Raises:
            ServiceUnavailableError: If the NAS service cannot be reached.
        """
