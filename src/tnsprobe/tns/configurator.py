"""NR5G sync pulse configurator.

This module drives pulse generation on the modem: wait for NR5G service,
send the configure request with bounded retries, and send the symmetric
stop request at shutdown.

State machine::

    WAITING_FOR_READINESS -> CONFIGURING -> CONFIGURED | DEGRADED_RUNNING
                          \\                                  |
                           -> STOPPED <- STOPPING <-----------+
"""

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional

from tnsprobe.qmi.exceptions import RetryExhaustedError, TransportError
from tnsprobe.qmi.models import MessageId, SyncPulseConfig
from tnsprobe.qmi.transport import DEFAULT_SEND_TIMEOUT, QmiClient
from tnsprobe.tns.gate import DEFAULT_POLL_INTERVAL, ReadinessGate

logger = logging.getLogger(__name__)


class ConfiguratorState(Enum):
    """Lifecycle of the sync pulse configurator."""

    WAITING_FOR_READINESS = "waiting_for_readiness"
    CONFIGURING = "configuring"
    CONFIGURED = "configured"
    DEGRADED_RUNNING = "degraded_running"
    STOPPING = "stopping"
    STOPPED = "stopped"


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry of the configure request.

    Attributes:
        max_attempts: Total attempts, including the first.
        backoff: Seconds to wait between attempts.
    """

    max_attempts: int = 3
    backoff: float = 3.0


class PulseConfigurator:
    """Configures and stops NR5G sync pulse generation.

    Example:
        >>> configurator = PulseConfigurator(sleep=stop_event.wait)
        >>> state = configurator.run(client, config, gate, lambda: not stop_event.is_set())
        >>> configurator.send_stop(client)
    """

    def __init__(
        self,
        retry: Optional[RetryPolicy] = None,
        send_timeout: float = DEFAULT_SEND_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        sleep: Callable[[float], Any] = time.sleep,
        on_exhausted: Optional[Callable[[], None]] = None,
    ):
        """Initialize configurator.

        Args:
            retry: Retry policy for the configure request.
            send_timeout: Timeout of each request in seconds.
            poll_interval: Cancellation poll interval while waiting for readiness.
            sleep: Backoff sleep; pass an event's ``wait`` to make it interruptible.
            on_exhausted: Called when every configure attempt failed.
        """
        self.retry = retry or RetryPolicy()
        self.send_timeout = send_timeout
        self.poll_interval = poll_interval
        self._sleep = sleep
        self._on_exhausted = on_exhausted
        self._lock = threading.Lock()
        self._state = ConfiguratorState.WAITING_FOR_READINESS
        self.history: List[ConfiguratorState] = [self._state]
        self.attempts = 0

    @property
    def state(self) -> ConfiguratorState:
        """Current state."""
        with self._lock:
            return self._state

    def _transition(self, state: ConfiguratorState) -> None:
        with self._lock:
            if self._state == state:
                return
            logger.debug("Configurator %s -> %s", self._state.name, state.name)
            self._state = state
            self.history.append(state)

    def run(
        self,
        handle: QmiClient,
        config: SyncPulseConfig,
        gate: ReadinessGate,
        should_continue: Callable[[], bool],
    ) -> ConfiguratorState:
        """Wait for NR5G service, then configure pulse generation.

        Returns:
            CONFIGURED, DEGRADED_RUNNING, or STOPPED if cancelled while
            waiting for readiness.
        """
        logger.info("Waiting for NR5G service to become available...")
        if not gate.wait_until_ready(self.poll_interval, should_continue) or not should_continue():
            logger.info("Shutdown requested before NR5G became available")
            self._transition(ConfiguratorState.STOPPED)
            return self.state

        logger.info("NR5G service ready, configuring sync pulse generation")

        max_attempts = self.retry.max_attempts
        for attempt in range(1, max_attempts + 1):
            if not should_continue():
                logger.info("Shutdown requested during sync pulse configuration")
                self._transition(ConfiguratorState.DEGRADED_RUNNING)
                return self.state

            self.attempts = attempt
            self._transition(ConfiguratorState.CONFIGURING)
            if self.send_configure(handle, config):
                self._transition(ConfiguratorState.CONFIGURED)
                return self.state

            if attempt < max_attempts:
                logger.error(
                    "Sync pulse config attempt %d/%d failed, retrying in %gs...",
                    attempt,
                    max_attempts,
                    self.retry.backoff,
                )
                self._sleep(self.retry.backoff)

        error = RetryExhaustedError(self.attempts)
        logger.error("%s, continuing to listen for indications", error)
        self._transition(ConfiguratorState.DEGRADED_RUNNING)
        if self._on_exhausted is not None:
            self._on_exhausted()
        return self.state

    def send_configure(self, handle: QmiClient, config: SyncPulseConfig) -> bool:
        """Send one SET_NR5G_SYNC_PULSE_GEN request.

        Returns:
            True if the transport succeeded and the modem accepted it.
        """
        request = config.to_request()
        logger.info("Setting NR5G sync pulse generation...")
        logger.info("  pulse_period        = %d (x10ms)", config.pulse_period)
        logger.info("  start_sfn           = %d", config.start_sfn)
        logger.info("  report_period       = %d (x10ms)", config.report_period)
        logger.info("  pulse_align_type    = %d (%s)", config.pulse_align_type, config.pulse_align_type.name)
        logger.info(
            "  pulse_trigger_action= %d (%s)",
            config.pulse_trigger_action,
            config.pulse_trigger_action.name,
        )
        logger.info("  pulse_get_cxo_count = %d", config.pulse_get_cxo_count)

        try:
            response = handle.send_request(
                MessageId.SET_NR5G_SYNC_PULSE_GEN,
                request,
                timeout=self.send_timeout,
            )
        except TransportError as e:
            logger.error("SET_NR5G_SYNC_PULSE_GEN failed: %s", e)
            return False

        if not response.success:
            logger.error(
                "SET_NR5G_SYNC_PULSE_GEN response error: result=%d, error=0x%x",
                response.result,
                response.error,
            )
            return False

        logger.info("NR5G sync pulse generation configured successfully")
        return True

    def send_stop(self, handle: Optional[QmiClient]) -> bool:
        """Ask the modem to stop pulse generation.

        Failures are logged and never raised.

        Returns:
            True if the modem acknowledged the stop request.
        """
        # STOPPED is final; a run cancelled before readiness stays there
        finished = self.state == ConfiguratorState.STOPPED
        if not finished:
            self._transition(ConfiguratorState.STOPPING)
        try:
            if handle is None or handle.is_released:
                logger.info("Sync pulse client not available, skipping stop request")
                return False

            logger.info("Stopping NR5G sync pulse generation...")
            try:
                response = handle.send_request(
                    MessageId.SET_NR5G_SYNC_PULSE_GEN,
                    SyncPulseConfig.stop_request(),
                    timeout=self.send_timeout,
                )
            except TransportError as e:
                logger.error("Stop sync pulse request failed: %s", e)
                return False

            if not response.success:
                logger.error(
                    "Stop sync pulse response error: result=%d, error=0x%x",
                    response.result,
                    response.error,
                )
                return False
            return True
        finally:
            if not finished:
                self._transition(ConfiguratorState.STOPPED)
