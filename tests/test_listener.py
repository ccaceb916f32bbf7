"""
Tests for port discovery and the background listener.
"""

import socket
import urllib.request

import pytest
from flask import Flask

from lanshare.errors import NoFreePortError
from lanshare.listener import Listener, bind_socket


@pytest.fixture
def busy_port():
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    sock.listen(1)
    yield sock.getsockname()[1]
    sock.close()


def test_skips_busy_port(busy_port):
    sock = bind_socket("127.0.0.1", busy_port, attempts=10)
    try:
        port = sock.getsockname()[1]
        assert busy_port < port < busy_port + 10
    finally:
        sock.close()


def test_gives_up_after_attempts(busy_port):
    with pytest.raises(NoFreePortError):
        bind_socket("127.0.0.1", busy_port, attempts=1)


def test_listener_serves_until_stopped():
    app = Flask(__name__)

    @app.route("/ping")
    def ping():
        return "pong"

    listener = Listener(app, "127.0.0.1", 0)
    listener.start()
    url = f"http://127.0.0.1:{listener.port}/ping"
    try:
        with urllib.request.urlopen(url, timeout=5) as resp:
            assert resp.read() == b"pong"
    finally:
        listener.stop()
    listener.stop()

    with pytest.raises(OSError):
        urllib.request.urlopen(url, timeout=2)


def test_stop_without_start():
    listener = Listener(Flask(__name__), "127.0.0.1", 0)
    listener.stop()
