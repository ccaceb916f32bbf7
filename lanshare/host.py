"""Run one lanshare mode at a time: send, receive or clipboard."""

import functools
import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from .clipboard import ClipboardRelay
from .config import Settings
from .errors import TransferError
from .listener import Listener
from .server import create_clipboard_app, create_receive_app, create_send_app
from .session import Session, SessionState
from .shutdown import EXPLICIT, LISTENER_ERROR, ShutdownCoordinator
from .utils import preferred_ip

logger = logging.getLogger(__name__)

SEND = "send"
RECEIVE = "receive"
CLIPBOARD = "clipboard"


def log_event(name: str, payload: dict) -> None:
    if name == "transfer-progress":
        logger.debug("%s %s", name, payload)
    elif name == "server_error":
        logger.warning("%s: %s", name, payload.get("message"))
    else:
        logger.info("%s %s", name, payload)


@dataclass(frozen=True)
class HostInfo:
    mode: str
    ip: str
    port: int
    url: str
    session: Session | None = None


class TransferHost:
    def __init__(
        self,
        settings: Settings | None = None,
        on_event: Callable[[str, dict], None] | None = None,
        relay: ClipboardRelay | None = None,
        state: SessionState | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings or Settings()
        self.on_event = on_event or log_event
        self.clock = clock
        self.state = state or SessionState(clock=clock)
        self.relay = relay or ClipboardRelay(
            interval=self.settings.clipboard_interval,
            on_change=lambda text: self.on_event("clipboard-changed", {"text": text}),
        )
        self.info: HostInfo | None = None
        self._lock = threading.Lock()
        self._coordinator: ShutdownCoordinator | None = None

    @property
    def running(self) -> bool:
        coordinator = self._coordinator
        return coordinator is not None and not coordinator.stopped

    # ----------------------------
    # Modes
    # ----------------------------

    def start_send(self, paths, port: int | None = None, password: str = "", limit: int = 0, ttl=0) -> HostInfo:
        with self._lock:
            self._stop_current()
            session = self.state.start(paths, limit=limit, password=password, ttl=ttl)
            coordinator = ShutdownCoordinator(
                cleanup=[functools.partial(self.state.stop, session.id)], on_event=self.on_event
            )
            app = create_send_app(self.state, coordinator, self.relay, self.settings, self.on_event)
            try:
                info = self._serve(SEND, app, coordinator, port, session=session)
            except TransferError:
                self.state.stop(session.id)
                raise
            if session.expires_at is not None:
                coordinator.arm_expiry(session.expires_at, self.clock)
            return info

    def start_receive(self, save_dir, port: int | None = None, overwrite: bool = False) -> HostInfo:
        with self._lock:
            self._stop_current()
            coordinator = ShutdownCoordinator(on_event=self.on_event)
            app = create_receive_app(Path(save_dir), self.relay, self.settings, self.on_event, overwrite)
            logger.info("Saving uploads to %s", save_dir)
            return self._serve(RECEIVE, app, coordinator, port)

    def start_clipboard(self, port: int | None = None) -> HostInfo:
        with self._lock:
            self._stop_current()
            coordinator = ShutdownCoordinator(cleanup=[self.relay.stop], on_event=self.on_event)
            app = create_clipboard_app(self.relay)
            info = self._serve(CLIPBOARD, app, coordinator, port, path="/clipboard")
            self.relay.start()
            return info

    # ----------------------------
    # Lifecycle
    # ----------------------------

    def stop(self) -> bool:
        coordinator = self._coordinator
        if coordinator is None:
            return False
        return coordinator.trigger(EXPLICIT)

    def wait(self, timeout: float | None = None) -> bool:
        coordinator = self._coordinator
        if coordinator is None:
            return True
        return coordinator.wait(timeout)

    def _stop_current(self) -> None:
        if self._coordinator is not None:
            self._coordinator.trigger(EXPLICIT)
            # a teardown already in flight must finish before the next mode starts
            self._coordinator.wait()
        self._coordinator = None
        self.info = None

    def _serve(self, mode, app, coordinator, port, path: str = "", session=None) -> HostInfo:
        listener = Listener(
            app,
            self.settings.host,
            self.settings.port if port is None else port,
            self.settings.port_attempts,
            on_error=lambda e: coordinator.trigger(LISTENER_ERROR, str(e)),
        )
        coordinator.attach_listener(listener.stop)
        listener.start()

        ip = preferred_ip(self.settings.host)
        info = HostInfo(
            mode=mode,
            ip=ip,
            port=listener.port,
            url=f"http://{ip}:{listener.port}{path}",
            session=session,
        )
        self._coordinator = coordinator
        self.info = info
        logger.info("%s mode live at %s", mode.capitalize(), info.url)
        return info
