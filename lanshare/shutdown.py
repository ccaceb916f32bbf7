"""One-shot teardown of a running host: listener first, then session cleanup."""

import enum
import logging
import threading
import time
from typing import Callable

logger = logging.getLogger(__name__)

EXPLICIT = "explicit"
LIMIT_REACHED = "limit-reached"
EXPIRED = "expired"
LISTENER_ERROR = "listener-error"


class CoordinatorState(enum.Enum):
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


class ShutdownCoordinator:
    """Bring a host down exactly once, whichever trigger fires first.

    ``stop_listener`` closes the network listener; each ``cleanup`` callable
    (e.g. ``SessionState.stop``) runs after it. Timers created through
    ``schedule`` are cancelled on teardown so none can fire into a later host.
    """

    def __init__(
        self,
        stop_listener: Callable[[], None] | None = None,
        cleanup: list[Callable[[], object]] | None = None,
        on_event: Callable[[str, dict], None] | None = None,
    ):
        self.stop_listener = stop_listener
        self.cleanup = list(cleanup or [])
        self.on_event = on_event
        self.reason: str | None = None
        self._state = CoordinatorState.RUNNING
        self._lock = threading.Lock()
        self._timers: list[threading.Timer] = []
        self._done = threading.Event()

    @property
    def state(self) -> CoordinatorState:
        with self._lock:
            return self._state

    @property
    def stopped(self) -> bool:
        return self._done.is_set()

    def attach_listener(self, stop_listener: Callable[[], None]) -> None:
        self.stop_listener = stop_listener

    def trigger(self, reason: str = EXPLICIT, message: str | None = None) -> bool:
        with self._lock:
            if self._state is not CoordinatorState.RUNNING:
                return False
            self._state = CoordinatorState.STOPPING
            self.reason = reason
            timers, self._timers = self._timers, []

        logger.info("Stopping server (%s)", message or reason)
        for timer in timers:
            timer.cancel()
        try:
            if self.stop_listener is not None:
                self.stop_listener()
        except Exception:
            logger.exception("Error while closing the listener")
        finally:
            for fn in self.cleanup:
                try:
                    fn()
                except Exception:
                    logger.exception("Error during shutdown cleanup")
            with self._lock:
                self._state = CoordinatorState.STOPPED
            self._notify(reason, message)
            self._done.set()
        return True

    def schedule(self, delay: float, reason: str) -> threading.Timer | None:
        with self._lock:
            if self._state is not CoordinatorState.RUNNING:
                return None
            timer = threading.Timer(max(0.0, delay), self.trigger, args=(reason,))
            timer.daemon = True
            self._timers.append(timer)
            timer.start()
        return timer

    def arm_expiry(self, expires_at: float, clock: Callable[[], float] = time.time):
        return self.schedule(expires_at - clock(), EXPIRED)

    def wait(self, timeout: float | None = None) -> bool:
        return self._done.wait(timeout)

    def _notify(self, reason: str, message: str | None) -> None:
        if self.on_event is None:
            return
        if reason == LISTENER_ERROR:
            self.on_event("server_error", {"message": message or "listener stopped unexpectedly"})
        elif reason == EXPIRED:
            self.on_event("server_error", {"message": "Timeout Reached. Server Stopping."})
        self.on_event("server_stopped", {"reason": reason})
