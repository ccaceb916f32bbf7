"""Clipboard relay: poll the system clipboard and keep a short history."""

import logging
import threading
from typing import Callable

import pyperclip

from .config import CLIPBOARD_INTERVAL, HISTORY_LIMIT

logger = logging.getLogger(__name__)


class ClipboardRelay:
    def __init__(
        self,
        read: Callable[[], str] = pyperclip.paste,
        write: Callable[[str], None] = pyperclip.copy,
        interval: float = CLIPBOARD_INTERVAL,
        limit: int = HISTORY_LIMIT,
        on_change: Callable[[str], None] | None = None,
    ):
        self._read = read
        self._write = write
        self.interval = interval
        self.limit = limit
        self.on_change = on_change
        self._history: list[str] = []
        self._lock = threading.Lock()
        self._last_seen: str | None = None
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    # ----------------------------
    # History
    # ----------------------------

    def add_to_history(self, text: str) -> bool:
        if not text:
            return False
        with self._lock:
            if self._history and self._history[0] == text:
                return False
            self._history.insert(0, text)
            del self._history[self.limit:]
        return True

    def history(self) -> list[str]:
        with self._lock:
            return list(self._history)

    # ----------------------------
    # System clipboard
    # ----------------------------

    def current(self) -> str:
        try:
            return self._read() or ""
        except pyperclip.PyperclipException as e:
            logger.debug("Clipboard read failed: %s", e)
            return ""

    def publish(self, text: str) -> None:
        """Put text from a paired device on the host clipboard."""
        if not text:
            return
        try:
            self._write(text)
        except pyperclip.PyperclipException as e:
            logger.warning("Clipboard write failed: %s", e)
        self._last_seen = text
        if self.add_to_history(text) and self.on_change is not None:
            self.on_change(text)

    def poll_once(self) -> bool:
        text = self.current()
        if not text or text == self._last_seen:
            return False
        self._last_seen = text
        changed = self.add_to_history(text)
        if changed and self.on_change is not None:
            self.on_change(text)
        return changed

    # ----------------------------
    # Poll loop
    # ----------------------------

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="clipboard-poll", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None

    def _loop(self) -> None:
        logger.debug("Clipboard polling every %.1fs", self.interval)
        while not self._stop.is_set():
            try:
                self.poll_once()
            except Exception:
                logger.exception("Clipboard poll failed")
            self._stop.wait(self.interval)
