import os
import socket
import struct
from pathlib import Path

try:
    import fcntl
except ImportError:  # not available on Windows
    fcntl = None

from .errors import ValidationError

# ----------------------------
# Shared helpers
# ----------------------------

def format_bytes(num: int) -> str:
    units = ["B", "KB", "MB", "GB", "TB", "PB"]
    size = float(num)
    for unit in units:
        if size < 1024 or unit == units[-1]:
            if unit == "B":
                return f"{int(size)} {unit}"
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{num} B"

def ensure_within_dir(base_dir: Path, target: Path) -> None:
    base_dir = base_dir.resolve()
    target = target.resolve()
    if base_dir not in target.parents and target != base_dir:
        raise ValidationError("Invalid filename")

def dedupe_name(name: str, taken) -> str:
    """Return ``name`` or ``stem (n).suffix`` so that it is not in ``taken``."""
    if name not in taken:
        return name
    p = Path(name)
    stem, suffix = p.stem, p.suffix
    i = 1
    while True:
        candidate = f"{stem} ({i}){suffix}"
        if candidate not in taken:
            return candidate
        i += 1

def dedupe_path(path: Path) -> Path:
    if not path.exists():
        return path
    stem, suffix = path.stem, path.suffix
    i = 1
    while True:
        candidate = path.with_name(f"{stem} ({i}){suffix}")
        if not candidate.exists():
            return candidate
        i += 1

# ----------------------------
# Address discovery for banners and QR codes
# ----------------------------

def _get_iface_ipv4_linux(ifname: str) -> str | None:
    if fcntl is None:
        return None
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
            ifreq = struct.pack("256s", ifname.encode("utf-8")[:15])
            res = fcntl.ioctl(s.fileno(), 0x8915, ifreq)  # SIOCGIFADDR
        return socket.inet_ntoa(res[20:24])
    except OSError:
        return None

def _list_ipv4s_by_prefix(prefix: str) -> list[tuple[str, str]]:
    out: list[tuple[str, str]] = []
    try:
        names = os.listdir("/sys/class/net")
    except OSError:
        return out
    for ifname in names:
        if ifname.startswith(prefix):
            ip = _get_iface_ipv4_linux(ifname)
            if ip and not ip.startswith("127."):
                out.append((ifname, ip))
    return out

def outbound_ip() -> str:
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
            s.connect(("8.8.8.8", 80))  # no packets need to be sent
            return s.getsockname()[0]
    except OSError:
        return "127.0.0.1"

def preferred_ip(bound_host: str) -> str:
    """Pick the address a paired device should use to reach ``bound_host``."""
    if bound_host not in ("0.0.0.0", "::", ""):
        return bound_host
    for prefix in ("tun", "eth", "wl", "en"):
        found = _list_ipv4s_by_prefix(prefix)
        if found:
            return found[0][1]
    return outbound_ip()
