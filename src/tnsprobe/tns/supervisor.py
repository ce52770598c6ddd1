"""TNS supervisor.

This module owns the two TNS workers and their shared readiness gate:

- ``tns-listener`` registers for NAS indications and routes every indication
  delivered by either client through the :class:`IndicationRouter`.
- ``tns-sync-pulse`` waits for NR5G service, configures pulse generation,
  then idles until shutdown.

Shutdown is cooperative. SIGINT/SIGTERM handlers only clear a flag; the
supervisor thread observes it, wakes the workers, joins them with a bounded
timeout, stops pulse generation and releases both clients. A vendor client
whose own receive thread is blocked may only notice the shutdown when its
next message arrives or when the client is released; that wait is outside
the probe's control.
"""

import logging
import signal
import threading
import time
from queue import Empty, Full, Queue
from typing import Any, Callable, Dict, List, Optional, TextIO, Union

from tnsprobe.qmi.exceptions import ServiceUnavailableError, TransportError
from tnsprobe.qmi.models import (
    NAS_INDICATIONS,
    IndicationEvent,
    IndicationStream,
    SyncPulseConfig,
)
from tnsprobe.qmi.transport import ClientError, IndicationCallback, QmiClient, ServiceProvider
from tnsprobe.tns.configurator import PulseConfigurator, RetryPolicy
from tnsprobe.tns.gate import ReadinessGate
from tnsprobe.tns.router import IndicationRouter
from tnsprobe.tns.settings import TnsSettings

logger = logging.getLogger(__name__)

NAS_CLIENT_NAME = "nas"
SYNC_PULSE_CLIENT_NAME = "sync_pulse"

# How often the supervisor thread checks the shutdown flag
STOP_CHECK_INTERVAL = 0.2

INDICATION_QUEUE_SIZE = 1000


class ControlChannel:
    """Interactive control channel shared by successive supervisor runs.

    A single reader thread waits for one line (ENTER) or EOF on the stream
    and then sets :attr:`triggered`. Restarted runs reuse the same channel,
    so a line is never consumed by a reader that belongs to a finished run.
    """

    def __init__(self, stream: TextIO):
        self.stream = stream
        self.triggered = threading.Event()
        self._reader: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    def start(self) -> None:
        """Start the reader thread once; later calls do nothing."""
        with self._lock:
            if self._reader is not None:
                return
            self._reader = threading.Thread(target=self._read, name="tns-control", daemon=True)
            self._reader.start()

    def _read(self) -> None:
        print("\n(After having set the input, press ENTER to stop)\n", flush=True)
        try:
            line = self.stream.readline()
        except (OSError, ValueError) as e:
            logger.warning("Control channel closed: %s", e)
            line = ""

        if line:
            logger.info("ENTER pressed, stopping...")
        else:
            logger.info("End of input on control channel, stopping...")
        self.triggered.set()


class Supervisor:
    """Runs the TNS listener and sync pulse workers.

    Example:
        >>> provider = SimulatedServiceProvider()
        >>> supervisor = Supervisor(provider, load_defaults(), control=sys.stdin)
        >>> exit_code = supervisor.run()
    """

    def __init__(
        self,
        provider: ServiceProvider,
        config: SyncPulseConfig,
        settings: Optional[TnsSettings] = None,
        control: Optional[Union[TextIO, ControlChannel]] = None,
        handle_signals: bool = True,
    ):
        """Initialize supervisor.

        Args:
            provider: Source of the NAS and sync pulse clients.
            config: Sync pulse parameters to configure.
            settings: Timing and policy settings.
            control: Interactive control stream or a shared :class:`ControlChannel`;
                a line or EOF stops the run.
            handle_signals: Install SIGINT/SIGTERM handlers (main thread only).
        """
        self.provider = provider
        self.config = config
        self.settings = settings or TnsSettings()
        if control is not None and not isinstance(control, ControlChannel):
            control = ControlChannel(control)
        self.control: Optional[ControlChannel] = control
        self.handle_signals = handle_signals

        self.gate = ReadinessGate()
        self.router = IndicationRouter(self.gate)

        self._running = True
        self._stop_event = threading.Event()
        self._indications: "Queue[Optional[IndicationEvent]]" = Queue(maxsize=INDICATION_QUEUE_SIZE)

        self.configurator = PulseConfigurator(
            retry=RetryPolicy(
                max_attempts=self.settings.max_attempts,
                backoff=self.settings.retry_backoff,
            ),
            send_timeout=self.settings.send_timeout,
            poll_interval=self.settings.poll_interval,
            sleep=self._stop_event.wait,
            on_exhausted=self._on_configure_exhausted,
        )

        self.nas_client: Optional[QmiClient] = None
        self.sync_pulse_client: Optional[QmiClient] = None
        self._workers: List[threading.Thread] = []
        self._previous_handlers: Dict[int, Any] = {}

        self.exit_code = 0
        self.shutdown_requested = False
        self.unfinished_workers: List[str] = []

    # =========================================================================
    # Public API
    # =========================================================================

    def should_continue(self) -> bool:
        """Check whether the workers should keep running."""
        return self._running and not self._stop_event.is_set()

    def stop(self) -> None:
        """Request shutdown. Safe to call from any thread."""
        self.shutdown_requested = True
        self._running = False
        self._stop_event.set()

    @property
    def workers(self) -> List[threading.Thread]:
        return list(self._workers)

    def run(self) -> int:
        """Run until a shutdown trigger, then clean up.

        Returns:
            0 on clean shutdown, 1 if the clients could not be acquired or
            a worker failed.
        """
        logger.info("=== TNS (Time Network Synchronization) Application ===")
        logger.info("Monitors NR5G SIB9 time sync via QMI NAS")

        try:
            self._acquire_clients()
        except ServiceUnavailableError as e:
            logger.error("%s", e)
            self._release_clients()
            return 1

        self._install_signal_handlers()
        try:
            self._start_workers()
            self._start_control_reader()
            self._wait_for_stop()
        finally:
            self._shutdown()
            self._restore_signal_handlers()

        logger.info("TNS application terminated")
        return self.exit_code

    # =========================================================================
    # Startup
    # =========================================================================

    def _acquire_clients(self) -> None:
        self.nas_client = self.provider.acquire(
            NAS_CLIENT_NAME, self._indication_callback(IndicationStream.NAS)
        )
        logger.info("QMI NAS client initialized")
        self.nas_client.register_error_callback(self._on_client_error)
        self.router.register_decoder(IndicationStream.NAS, self.nas_client)

        self.sync_pulse_client = self.provider.acquire(
            SYNC_PULSE_CLIENT_NAME, self._indication_callback(IndicationStream.SYNC_PULSE)
        )
        logger.info("QMI Sync Pulse client initialized")
        self.sync_pulse_client.register_error_callback(self._on_client_error)
        self.router.register_decoder(IndicationStream.SYNC_PULSE, self.sync_pulse_client)

    def _start_workers(self) -> None:
        self._workers = [
            threading.Thread(target=self._listen, name="tns-listener", daemon=True),
            threading.Thread(target=self._run_sync_pulse, name="tns-sync-pulse", daemon=True),
        ]
        for worker in self._workers:
            worker.start()

    def _start_control_reader(self) -> None:
        if self.control is not None:
            self.control.start()

    def _install_signal_handlers(self) -> None:
        if not self.handle_signals or threading.current_thread() is not threading.main_thread():
            return

        for signum in (signal.SIGINT, signal.SIGTERM):
            self._previous_handlers[signum] = signal.signal(signum, self._on_signal)

    def _restore_signal_handlers(self) -> None:
        for signum, handler in self._previous_handlers.items():
            signal.signal(signum, handler)
        self._previous_handlers.clear()

    # =========================================================================
    # Workers
    # =========================================================================

    def _listen(self) -> None:
        logger.info("TNS NAS indication listener starting...")
        try:
            self.nas_client.subscribe(NAS_INDICATIONS)
        except TransportError as e:
            logger.error("Failed to register NAS indications: %s", e)
            return
        logger.info("NAS indication registration successful")

        while self.should_continue():
            try:
                event = self._indications.get(timeout=self.settings.poll_interval)
            except Empty:
                continue
            if event is None:
                break
            self.router.handle(event)

        logger.info("NAS indication thread exited")

    def _run_sync_pulse(self) -> None:
        logger.info("TNS NR5G Sync Pulse worker starting...")
        self.configurator.run(self.sync_pulse_client, self.config, self.gate, self.should_continue)

        while self.should_continue():
            self._stop_event.wait(self.settings.poll_interval)

        logger.info("Sync Pulse indication thread exited")

    # =========================================================================
    # Callbacks
    # =========================================================================

    def _indication_callback(self, stream: IndicationStream) -> IndicationCallback:
        def on_indication(message_id: int, payload: bytes) -> None:
            try:
                self._indications.put_nowait(IndicationEvent(message_id, payload, stream))
            except Full:
                logger.warning(
                    "Indication queue full, dropping %s msg_id=0x%04X",
                    stream.value,
                    message_id,
                )

        return on_indication

    def _on_client_error(self, client: QmiClient, error: ClientError) -> None:
        if error.service_down:
            logger.error("%s service is down, releasing client", client.name)
            client.release()
        else:
            logger.error("%s client error: %d", client.name, error.code)

    def _on_configure_exhausted(self) -> None:
        if self.settings.exit_on_configure_failure:
            logger.error("Sync pulse could not be configured, shutting down")
            self.exit_code = 1
            self._running = False
            self._stop_event.set()

    def _on_signal(self, signum: int, frame: Any) -> None:
        # Only flip the flag; the supervisor thread does the rest
        self.shutdown_requested = True
        self._running = False

    # =========================================================================
    # Shutdown
    # =========================================================================

    def _wait_for_stop(self) -> None:
        listener = self._workers[0]
        while self._running:
            self._stop_event.wait(STOP_CHECK_INTERVAL)
            if self.control is not None and self.control.triggered.is_set():
                self.stop()
                break
            if self._running and not listener.is_alive():
                logger.error("Indication listener exited, shutting down")
                self.exit_code = 1
                self._running = False

        if self.shutdown_requested:
            logger.info("Shutdown requested, stopping workers...")

    def _shutdown(self) -> None:
        self._running = False
        self._stop_event.set()
        self.gate.wake()
        try:
            self._indications.put_nowait(None)
        except Full:
            pass

        for worker in self._workers:
            worker.join(timeout=self.settings.join_timeout)
            if worker.is_alive():
                logger.warning(
                    "Worker %s did not finish within %.1fs",
                    worker.name,
                    self.settings.join_timeout,
                )
                self.unfinished_workers.append(worker.name)

        self.configurator.send_stop(self.sync_pulse_client)
        self._release_clients()

    def _release_clients(self) -> None:
        for label, client in (
            ("Sync Pulse", self.sync_pulse_client),
            ("NAS", self.nas_client),
        ):
            if client is None or client.is_released:
                continue
            try:
                client.release()
                logger.info("QMI %s client released", label)
            except TransportError as e:
                logger.error("QMI %s client release failed: %s", label, e)


def run_supervisor(
    provider_factory: Callable[[], ServiceProvider],
    config: SyncPulseConfig,
    settings: Optional[TnsSettings] = None,
    control: Optional[Union[TextIO, ControlChannel]] = None,
    restart: bool = False,
) -> int:
    """Run a supervisor, optionally restarting it after failed runs.

    A run that ends because shutdown was requested is never restarted. One
    control channel serves every run and also cuts the restart delay short.
    SIGINT/SIGTERM handlers are only installed while a run is active.
    """
    settings = settings or TnsSettings()
    channel = None
    if control is not None:
        channel = control if isinstance(control, ControlChannel) else ControlChannel(control)
        channel.start()

    while True:
        supervisor = Supervisor(provider_factory(), config, settings, control=channel)
        exit_code = supervisor.run()
        if not restart or exit_code == 0 or supervisor.shutdown_requested:
            return exit_code

        logger.info("QMI threads exited, restarting in %g seconds...", settings.restart_delay)
        if channel is None:
            time.sleep(settings.restart_delay)
        elif channel.triggered.wait(settings.restart_delay):
            return exit_code
