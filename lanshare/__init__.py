"""Ephemeral file and clipboard sharing over the local network."""

from .archive import Archive, build_archive
from .clipboard import ClipboardRelay
from .errors import TransferError
from .host import HostInfo, TransferHost
from .progress import ProgressObservation, ProgressTracker
from .session import Denial, DenyReason, Grant, Session, SessionState
from .shutdown import ShutdownCoordinator

__version__ = "0.1.0"

__all__ = [
    "Archive",
    "ClipboardRelay",
    "Denial",
    "DenyReason",
    "Grant",
    "HostInfo",
    "ProgressObservation",
    "ProgressTracker",
    "Session",
    "SessionState",
    "ShutdownCoordinator",
    "TransferError",
    "TransferHost",
    "build_archive",
]
