"""Throttled transfer progress reporting."""

import time
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator

from .config import PROGRESS_INTERVAL


@dataclass(frozen=True)
class ProgressObservation:
    total: int
    transferred: int
    percent: int

    def as_dict(self) -> dict:
        return {"percent": self.percent, "transferred": self.transferred, "total": self.total}


class ProgressTracker:
    """Count bytes moving through a stream and report progress to ``listener``.

    An observation is emitted at most once per ``interval`` seconds, except the
    100% observation which is always emitted, once. Nothing is emitted after it.
    """

    def __init__(
        self,
        total: int,
        listener: Callable[[ProgressObservation], None] | None = None,
        interval: float = PROGRESS_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.total = total
        self.transferred = 0
        self.listener = listener
        self.interval = interval
        self.clock = clock
        self.finished = False
        self._last_emit: float | None = None

    @property
    def percent(self) -> int:
        if self.total <= 0:
            return 100
        return min(100, (100 * self.transferred) // self.total)

    def update(self, n: int) -> None:
        self.transferred += n
        if self.finished:
            return
        percent = self.percent
        now = self.clock()
        if percent == 100 or self._last_emit is None or now - self._last_emit >= self.interval:
            self._last_emit = now
            if percent == 100:
                self.finished = True
            if self.listener is not None:
                self.listener(ProgressObservation(self.total, self.transferred, percent))

    def wrap(self, chunks: Iterable[bytes]) -> Iterator[bytes]:
        for chunk in chunks:
            self.update(len(chunk))
            yield chunk
        if self.total <= 0:
            # an empty stream still reports completion
            self.update(0)

    def reader(self, fileobj) -> "_TrackedReader":
        return _TrackedReader(fileobj, self)


class _TrackedReader:
    def __init__(self, fileobj, tracker: ProgressTracker):
        self._fileobj = fileobj
        self._tracker = tracker

    def read(self, size: int = -1) -> bytes:
        data = self._fileobj.read(size)
        if data:
            self._tracker.update(len(data))
        return data
