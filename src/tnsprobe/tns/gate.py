"""NR5G readiness gate.

The listener worker opens the gate when SYS_INFO reports NR5G in service;
the sync pulse worker blocks on it before configuring pulse generation.
The cancellation flag is owned by a signal handler that cannot notify the
condition, so waiters re-check it on a bounded poll interval.
"""

import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)

# Interval between cancellation checks while waiting for readiness
DEFAULT_POLL_INTERVAL = 5.0


class ReadinessGate:
    """Monitor guarding the "NR5G service attached" flag.

    Example:
        >>> gate = ReadinessGate()
        >>> gate.set_ready(True)
        True
        >>> gate.wait_until_ready(5.0, lambda: True)
        True
    """

    def __init__(self) -> None:
        self._ready = False
        self._condition = threading.Condition(threading.Lock())

    @property
    def is_ready(self) -> bool:
        """Check if NR5G service is currently available."""
        with self._condition:
            return self._ready

    def set_ready(self, ready: bool) -> bool:
        """Update readiness.

        Args:
            ready: New readiness state.

        Returns:
            True if the state changed, False if it already had this value.
        """
        with self._condition:
            if self._ready == ready:
                return False

            self._ready = ready
            if ready:
                logger.info("NR5G service is available, signaling sync pulse thread")
                self._condition.notify_all()
            else:
                logger.info("NR5G service lost")
            return True

    def wait_until_ready(
        self,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        should_continue: Callable[[], bool] = lambda: True,
    ) -> bool:
        """Block until the gate opens or cancellation is observed.

        Args:
            poll_interval: Maximum time between ``should_continue`` checks.
            should_continue: Returns False once shutdown was requested.

        Returns:
            True once ready, False if cancelled first.
        """
        with self._condition:
            while not self._ready:
                if not should_continue():
                    return False

                self._condition.wait(timeout=poll_interval)

                if not self._ready and should_continue():
                    logger.info("Still waiting for NR5G service...")
            return True

    def wake(self) -> None:
        """Wake waiters so they re-check cancellation immediately.

        Must not be called from a signal handler.
        """
        with self._condition:
            self._condition.notify_all()

    def __repr__(self) -> str:
        return f"ReadinessGate(ready={self._ready})"
