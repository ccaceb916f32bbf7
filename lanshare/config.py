"""Runtime settings with LANSHARE_* environment overrides."""

import os
from dataclasses import dataclass, fields

DEFAULT_PORT = 8080
PORT_ATTEMPTS = 100
GRACE_DELAY = 5.0
MAX_UPLOAD_BYTES = 10 * 1024 * 1024 * 1024  # 10 GiB
CLIPBOARD_INTERVAL = 1.0
HISTORY_LIMIT = 50
PROGRESS_INTERVAL = 0.1
CHUNK_SIZE = 1024 * 1024
ENV_PREFIX = "LANSHARE_"


@dataclass
class Settings:
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    port_attempts: int = PORT_ATTEMPTS
    grace_delay: float = GRACE_DELAY
    max_upload_bytes: int = MAX_UPLOAD_BYTES
    clipboard_interval: float = CLIPBOARD_INTERVAL
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ=None) -> "Settings":
        environ = os.environ if environ is None else environ
        values = {}
        for f in fields(cls):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is None or raw == "":
                continue
            try:
                values[f.name] = type(f.default)(raw)
            except ValueError:
                raise ValueError(f"invalid value for {ENV_PREFIX}{f.name.upper()}: {raw!r}")
        return cls(**values)
