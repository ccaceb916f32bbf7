"""
Pytest configuration and shared fixtures.
"""

import pytest

from lanshare.clipboard import ClipboardRelay
from lanshare.session import SessionState


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeClipboard:
    def __init__(self, value: str = ""):
        self.value = value
        self.writes: list[str] = []

    def paste(self) -> str:
        return self.value

    def copy(self, text: str) -> None:
        self.writes.append(text)
        self.value = text


class EventRecorder:
    def __init__(self):
        self.events: list[tuple[str, dict]] = []

    def __call__(self, name: str, payload: dict) -> None:
        self.events.append((name, payload))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]

    def payloads(self, name: str) -> list[dict]:
        return [payload for n, payload in self.events if n == name]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def clipboard():
    return FakeClipboard()


@pytest.fixture
def relay(clipboard):
    return ClipboardRelay(read=clipboard.paste, write=clipboard.copy, interval=0.01)


@pytest.fixture
def events():
    return EventRecorder()


@pytest.fixture
def state(clock, tmp_path):
    tmp = tmp_path / "tmp"
    tmp.mkdir()
    s = SessionState(clock=clock, tmp_dir=str(tmp))
    yield s
    s.stop()


@pytest.fixture
def sample_file(tmp_path):
    path = tmp_path / "report.txt"
    path.write_bytes(b"hello lanshare\n" * 10)
    return path


@pytest.fixture
def inputs(tmp_path):
    """a.txt (5 bytes), b.txt (9 bytes) and a directory d/ with x.txt."""
    src = tmp_path / "src"
    src.mkdir()
    (src / "a.txt").write_bytes(b"aaaaa")
    (src / "b.txt").write_bytes(b"bbbbbbbbb")
    d = src / "d"
    d.mkdir()
    (d / "x.txt").write_bytes(b"x content")
    return src
