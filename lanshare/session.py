"""The single active share: policy, counters and the download gate.

Every mutation happens under ``SessionState._lock``. Callers never read the
counter and then act on it; they ask ``try_consume_slot`` and get back either
a ``Grant`` or a ``Denial``.
"""

import enum
import hmac
import logging
import os
import secrets
import threading
import time
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable

from .archive import Archive, build_archive, needs_archive
from .errors import (
    IOStatError,
    LimitExceeded,
    NoInputError,
    SessionExpired,
    SessionStopped,
    StateError,
    ValidationError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Session:
    id: str
    path: str
    name: str
    size: int
    limit: int = 0
    password: str = field(default="", repr=False)
    expires_at: float | None = None
    started_at: float = 0.0
    temporary: bool = False

    @property
    def has_password(self) -> bool:
        return self.password != ""


class DenyReason(enum.Enum):
    EXPIRED = "expired"
    LIMIT_EXCEEDED = "limit-exceeded"
    STOPPED = "stopped"


_DENIAL_ERRORS = {
    DenyReason.EXPIRED: SessionExpired,
    DenyReason.LIMIT_EXCEEDED: LimitExceeded,
    DenyReason.STOPPED: SessionStopped,
}


@dataclass(frozen=True)
class Denial:
    reason: DenyReason
    granted = False

    def error(self) -> StateError:
        return _DENIAL_ERRORS[self.reason]()


class _Target:
    """Bookkeeping for the file a session serves, shared by its grants."""

    def __init__(self, path: str, temporary: bool):
        self.path = path
        self.temporary = temporary
        self.readers = 0
        self.stopped = False
        self.removed = False


@dataclass(eq=False)
class Grant:
    """A consumed download slot. ``release`` must be called once the
    transfer is over; it is safe to call more than once."""

    session: Session
    sequence: int
    _state: "SessionState" = field(repr=False)
    _target: _Target = field(repr=False)
    released: bool = field(default=False, repr=False)
    granted = True

    def open(self):
        return open(self._target.path, "rb")

    def release(self) -> None:
        self._state._release(self)


class SessionState:
    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        archiver: Callable[..., Archive] = build_archive,
        tmp_dir: str | None = None,
    ):
        self.clock = clock
        self.archiver = archiver
        self.tmp_dir = tmp_dir
        self._lock = threading.Lock()
        self._start_lock = threading.Lock()
        self._session: Session | None = None
        self._target: _Target | None = None
        self._current = 0

    # ----------------------------
    # Lifecycle
    # ----------------------------

    def start(self, paths, limit: int = 0, password: str = "", ttl=0) -> Session:
        paths = [os.fspath(p) for p in paths or []]
        if not paths:
            raise NoInputError()
        if limit < 0:
            raise ValidationError("download limit must be >= 0")
        if isinstance(ttl, timedelta):
            ttl = ttl.total_seconds()
        password = password or ""

        with self._start_lock:
            self.stop()

            archive = None
            if needs_archive(paths):
                archive = self.archiver(paths, tmp_dir=self.tmp_dir)
                target, name = archive.path, archive.name
            else:
                target, name = paths[0], os.path.basename(paths[0])

            try:
                st = os.stat(target)
            except OSError as e:
                if archive is not None:
                    archive.remove()
                raise IOStatError(target, e.strerror or str(e)) from e

            now = self.clock()
            session = Session(
                id=secrets.token_hex(8),
                path=target,
                name=name,
                size=st.st_size,
                limit=limit,
                password=password,
                expires_at=now + ttl if ttl > 0 else None,
                started_at=now,
                temporary=archive is not None,
            )
            with self._lock:
                self._session = session
                self._target = _Target(target, archive is not None)
                self._current = 0

        logger.info(
            "Sharing %s (%d bytes, limit=%s, password=%s, expires=%s)",
            session.name,
            session.size,
            session.limit or "unlimited",
            "yes" if session.has_password else "no",
            session.expires_at or "never",
        )
        return session

    def stop(self, session_id: str | None = None) -> Session | None:
        """Stop the active share. With ``session_id``, only if it is still that share."""
        with self._lock:
            session, target = self._session, self._target
            if session is None:
                return None
            if session_id is not None and session.id != session_id:
                return None
            self._session = None
            self._target = None
            self._current = 0
            target.stopped = True
            self._remove_if_idle(target)
        logger.info("Share of %s stopped", session.name)
        return session

    # ----------------------------
    # Operations
    # ----------------------------

    @property
    def active(self) -> Session | None:
        with self._lock:
            return self._session

    def authorize(self, code: str) -> bool:
        with self._lock:
            session = self._session
        if session is None:
            return False
        if not session.password:
            return True
        if not isinstance(code, str):
            return False
        return hmac.compare_digest(code.encode("utf-8"), session.password.encode("utf-8"))

    def try_consume_slot(self) -> Grant | Denial:
        with self._lock:
            session = self._session
            if session is None:
                return Denial(DenyReason.STOPPED)
            if session.expires_at is not None and self.clock() > session.expires_at:
                return Denial(DenyReason.EXPIRED)
            if session.limit > 0 and self._current >= session.limit:
                return Denial(DenyReason.LIMIT_EXCEEDED)
            self._current += 1
            self._target.readers += 1
            return Grant(session, self._current, self, self._target)

    def snapshot(self) -> dict | None:
        with self._lock:
            session, current = self._session, self._current
        if session is None:
            return None
        return {
            "filename": session.name,
            "size": session.size,
            "limit": session.limit,
            "current": current,
            "hasPassword": session.has_password,
            "expiry": int(session.expires_at) if session.expires_at is not None else 0,
            "startTime": int(session.started_at),
        }

    # ----------------------------
    # Temporary archive cleanup
    # ----------------------------

    def _release(self, grant: Grant) -> None:
        with self._lock:
            if grant.released:
                return
            grant.released = True
            grant._target.readers -= 1
            self._remove_if_idle(grant._target)

    def _remove_if_idle(self, target: _Target) -> None:
        # caller holds self._lock
        if not (target.temporary and target.stopped) or target.readers > 0 or target.removed:
            return
        target.removed = True
        try:
            os.remove(target.path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Could not remove temporary archive %s: %s", target.path, e)
        else:
            logger.debug("Removed temporary archive %s", target.path)
