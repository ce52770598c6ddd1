"""Simulated NAS service for dry runs and tests.

This module provides an in-process stand-in for the vendor QMI client
library. Payloads are JSON documents; indications are pushed by the
caller (or by timers) and delivered to every client whose service has
registered for them, the way the modem fans NAS indications out to all
clients of the same service.

Example:
    >>> provider = SimulatedServiceProvider()
    >>> provider.schedule_nr5g_status(ServiceStatus.SERVICE, delay=2.0)
    >>> supervisor = Supervisor(provider, load_defaults())
    >>> supervisor.run()
"""

import json
import logging
import threading
import time
from collections import deque
from typing import Any, Deque, Dict, Iterable, List, Mapping, Optional, Set, Tuple, Type, TypeVar, Union

from tnsprobe.qmi.exceptions import DecodeError, ServiceUnavailableError, TransportError
from tnsprobe.qmi.models import (
    MessageId,
    QmiResponse,
    QmiResult,
    ServiceStatus,
)
from tnsprobe.qmi.transport import (
    DEFAULT_SEND_TIMEOUT,
    ClientError,
    ErrorCallback,
    IndicationCallback,
    QmiClient,
    ServiceProvider,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Outcome of a scripted SET_NR5G_SYNC_PULSE_GEN request
RequestOutcome = Union[QmiResponse, Exception]

# GPS epoch (1980-01-06) relative to the UNIX epoch, in milliseconds
GPS_EPOCH_OFFSET_MS = 315964800000
DEFAULT_LEAP_SECONDS = 18
SFN_MODULO = 1024


def encode_payload(data: Mapping[str, Any]) -> bytes:
    """Encode an indication payload the way the simulated service does."""
    return json.dumps(dict(data), sort_keys=True).encode("utf-8")


class SimulatedClient(QmiClient):
    """Client handle issued by :class:`SimulatedServiceProvider`."""

    def __init__(
        self,
        name: str,
        provider: "SimulatedServiceProvider",
        indication_callback: IndicationCallback,
    ):
        super().__init__(name)
        self._provider = provider
        self._indication_callback = indication_callback
        self._error_callbacks: List[ErrorCallback] = []
        self._released = False
        self._lock = threading.Lock()
        self.requests: List[Tuple[int, Dict[str, Any]]] = []

    @property
    def is_released(self) -> bool:
        return self._released

    def send_request(
        self,
        message_id: int,
        request: Mapping[str, Any],
        timeout: float = DEFAULT_SEND_TIMEOUT,
    ) -> QmiResponse:
        if self._released:
            raise TransportError(f"Client '{self.name}' has been released")

        with self._lock:
            self.requests.append((int(message_id), dict(request)))

        logger.debug(
            "[%s] request msg_id=0x%04X timeout=%.1fs: %s",
            self.name,
            message_id,
            timeout,
            dict(request),
        )
        return self._provider._handle_request(self, int(message_id), dict(request))

    def subscribe(self, indication_ids: Iterable[int]) -> None:
        if self._released:
            raise TransportError(f"Client '{self.name}' has been released")
        self._provider._register_indications(self, indication_ids)

    def register_error_callback(self, callback: ErrorCallback) -> None:
        self._error_callbacks.append(callback)

    def decode(self, message_id: int, payload: bytes, shape: Type[T]) -> T:
        try:
            data = json.loads(payload.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise DecodeError(message_id, f"invalid payload: {e}")

        if not isinstance(data, dict):
            raise DecodeError(message_id, "payload is not a TLV mapping")

        try:
            return shape.from_dict(data)  # type: ignore[attr-defined]
        except (KeyError, TypeError, ValueError) as e:
            raise DecodeError(message_id, f"bad field {e!s}")

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self._provider._on_release(self)
        logger.debug("[%s] client released", self.name)

    def deliver(self, message_id: int, payload: bytes) -> None:
        """Hand an indication to the client's callback."""
        if self._released:
            return
        self._indication_callback(message_id, payload)

    def report_error(self, error: ClientError) -> None:
        """Invoke the registered error callbacks."""
        for callback in list(self._error_callbacks):
            callback(self, error)


class SimulatedServiceProvider(ServiceProvider):
    """In-process NAS service.

    Args:
        available: Whether clients can be acquired.
        configure_outcomes: Scripted outcomes for successive configure
            requests (a response, or an exception to raise). Once exhausted,
            requests succeed.
        pulse_report_interval: Seconds between simulated pulse reports while
            pulse generation is active, or None to emit none.
    """

    def __init__(
        self,
        available: bool = True,
        configure_outcomes: Optional[Iterable[RequestOutcome]] = None,
        pulse_report_interval: Optional[float] = 1.0,
        subscribe_error: Optional[TransportError] = None,
    ):
        self.available = available
        self.pulse_report_interval = pulse_report_interval
        self.subscribe_error = subscribe_error
        self.clients: Dict[str, SimulatedClient] = {}
        self._outcomes: Deque[RequestOutcome] = deque(configure_outcomes or [])
        self._registered: Set[int] = set()
        self._lock = threading.RLock()
        self._timers: List[threading.Timer] = []
        self._pulse_stop: Optional[threading.Event] = None
        self._pulse_thread: Optional[threading.Thread] = None
        self._sfn = 0
        self._nr5g_status: Optional[int] = None

    # =========================================================================
    # ServiceProvider
    # =========================================================================

    def acquire(self, name: str, indication_callback: IndicationCallback) -> SimulatedClient:
        if not self.available:
            raise ServiceUnavailableError("NAS", "simulated service is offline")

        client = SimulatedClient(name, self, indication_callback)
        with self._lock:
            self.clients[name] = client
        logger.debug("Simulated client '%s' acquired", name)
        return client

    # =========================================================================
    # Scripting
    # =========================================================================

    def push_indication(self, message_id: int, payload: Union[Mapping[str, Any], bytes]) -> int:
        """Deliver an indication to every active client.

        Returns:
            Number of clients the indication was delivered to.
        """
        if not isinstance(payload, (bytes, bytearray)):
            payload = encode_payload(payload)

        with self._lock:
            if int(message_id) not in self._registered:
                logger.debug("Dropping unregistered indication msg_id=0x%04X", message_id)
                return 0
            clients = [c for c in self.clients.values() if not c.is_released]

        for client in clients:
            client.deliver(int(message_id), bytes(payload))
        return len(clients)

    def set_nr5g_status(self, status: int) -> int:
        """Report an NR5G service status through SYS_INFO.

        The last status is replayed to clients that register for SYS_INFO
        later.
        """
        with self._lock:
            self._nr5g_status = int(status)
        return self.push_indication(MessageId.SYS_INFO_IND, {"nr5g_srv_status": int(status)})

    def schedule_nr5g_status(self, status: int = ServiceStatus.SERVICE, delay: float = 0.0) -> None:
        """Report an NR5G service status after ``delay`` seconds."""
        timer = threading.Timer(delay, self.set_nr5g_status, args=(status,))
        timer.daemon = True
        with self._lock:
            self._timers.append(timer)
        timer.start()

    def queue_configure_outcome(self, outcome: RequestOutcome) -> None:
        """Append a scripted outcome for the next configure request."""
        with self._lock:
            self._outcomes.append(outcome)

    def fail_service(self, name: str) -> None:
        """Simulate the service going down for one client."""
        client = self.clients.get(name)
        if client is not None:
            client.report_error(ClientError(ClientError.SERVICE_ERR, "service down"))

    @property
    def pulse_generation_active(self) -> bool:
        return self._pulse_thread is not None and self._pulse_thread.is_alive()

    def close(self) -> None:
        """Cancel timers and stop simulated pulse generation."""
        with self._lock:
            timers, self._timers = self._timers, []
        for timer in timers:
            timer.cancel()
        self._stop_pulses()

    # =========================================================================
    # Client hooks
    # =========================================================================

    def _register_indications(self, client: SimulatedClient, indication_ids: Iterable[int]) -> None:
        ids = {int(i) for i in indication_ids}
        client.requests.append((int(MessageId.INDICATION_REGISTER), {"indications": sorted(ids)}))
        if self.subscribe_error is not None:
            raise self.subscribe_error
        with self._lock:
            self._registered.update(ids)
        logger.debug("[%s] registered indications %s", client.name, sorted(ids))

        status = self._nr5g_status
        if status is not None and MessageId.SYS_INFO_IND in ids:
            self.push_indication(MessageId.SYS_INFO_IND, {"nr5g_srv_status": status})

    def _handle_request(
        self, client: SimulatedClient, message_id: int, request: Dict[str, Any]
    ) -> QmiResponse:
        if message_id != MessageId.SET_NR5G_SYNC_PULSE_GEN:
            return QmiResponse(QmiResult.FAILURE, error=0x0047)

        pulse_period = int(request.get("pulse_period", 0))
        if pulse_period == 0:
            self._stop_pulses()
            return QmiResponse()

        with self._lock:
            outcome = self._outcomes.popleft() if self._outcomes else QmiResponse()

        if isinstance(outcome, Exception):
            raise outcome

        if outcome.success:
            self._start_pulses(request)
        return outcome

    def _on_release(self, client: SimulatedClient) -> None:
        with self._lock:
            active = [c for c in self.clients.values() if not c.is_released]
        if not active:
            self._stop_pulses()

    # =========================================================================
    # Pulse generation
    # =========================================================================

    def _start_pulses(self, request: Dict[str, Any]) -> None:
        if self.pulse_report_interval is None or not request.get("report_period"):
            return

        self._stop_pulses()
        stop = threading.Event()
        with_cxo = bool(request.get("pulse_get_cxo_count"))
        self._pulse_stop = stop
        self._pulse_thread = threading.Thread(
            target=self._emit_pulses,
            args=(stop, with_cxo),
            name="SimulatedPulse",
            daemon=True,
        )
        self._pulse_thread.start()

    def _stop_pulses(self) -> None:
        if self._pulse_stop is not None:
            self._pulse_stop.set()
        thread = self._pulse_thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=2.0)
        self._pulse_stop = None
        self._pulse_thread = None

    def _emit_pulses(self, stop: threading.Event, with_cxo: bool) -> None:
        while not stop.wait(self.pulse_report_interval):
            utc_ms = int(time.time() * 1000)
            self._sfn = (self._sfn + 1) % SFN_MODULO
            report: Dict[str, Any] = {
                "sfn": self._sfn,
                "nta": 0,
                "nta_offset": 0,
                "leapseconds": DEFAULT_LEAP_SECONDS,
                "utc_time": utc_ms,
                "gps_time": utc_ms - GPS_EPOCH_OFFSET_MS + DEFAULT_LEAP_SECONDS * 1000,
                "is_cxo_count_present": with_cxo,
            }
            if with_cxo:
                report["cxo_count"] = time.monotonic_ns() // 52
            self.push_indication(MessageId.NR5G_TIME_SYNC_PULSE_REPORT_IND, report)
