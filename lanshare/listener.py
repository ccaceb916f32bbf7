"""Bind a free port and serve a WSGI app on it from a background thread."""

import logging
import os
import socket
import threading
from typing import Callable

from werkzeug.serving import make_server, select_address_family

from .config import PORT_ATTEMPTS
from .errors import ListenerError, NoFreePortError

logger = logging.getLogger(__name__)


def bind_socket(host: str, start: int, attempts: int = PORT_ATTEMPTS) -> socket.socket:
    """Return a listening socket on the first port from ``start`` that binds."""
    family = select_address_family(host, start)
    for port in range(start, start + max(1, attempts)):
        sock = socket.socket(family, socket.SOCK_STREAM)
        try:
            if os.name != "nt":
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((host, port))
            sock.listen(socket.SOMAXCONN)
        except OSError as e:
            sock.close()
            logger.debug("Port %d unavailable: %s", port, e)
            continue
        return sock
    raise NoFreePortError(start, attempts)


class Listener:
    def __init__(
        self,
        app,
        host: str,
        port: int,
        attempts: int = PORT_ATTEMPTS,
        on_error: Callable[[BaseException], None] | None = None,
    ):
        sock = bind_socket(host, port, attempts)
        try:
            self._server = make_server(
                host, sock.getsockname()[1], app, threaded=True, fd=sock.fileno()
            )
        except OSError as e:
            raise ListenerError(f"cannot start listener: {e}") from e
        finally:
            # make_server duplicates the descriptor
            sock.close()
        self.host = host
        self.port = self._server.server_address[1]
        self.on_error = on_error
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self._closed = False

    def start(self) -> None:
        self._thread = threading.Thread(target=self._serve, name=f"listener-{self.port}", daemon=True)
        self._thread.start()
        logger.info("Listening on %s:%d", self.host, self.port)

    def _serve(self) -> None:
        try:
            self._server.serve_forever()
        except Exception as e:
            logger.error("Listener on port %d failed: %s", self.port, e)
            if self.on_error is not None:
                self.on_error(e)

    def stop(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        if self._thread is not None:
            # serve_forever never returns if shutdown() is not called first
            self._server.shutdown()
        self._server.server_close()
        logger.info("Listener on port %d closed", self.port)
