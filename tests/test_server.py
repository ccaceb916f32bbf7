"""
HTTP contract tests for the send, receive and clipboard apps.
"""

import io
import threading

import pytest

from lanshare.config import Settings
from lanshare.errors import ValidationError
from lanshare.server import create_clipboard_app, create_receive_app, create_send_app
from lanshare.shutdown import LIMIT_REACHED, ShutdownCoordinator


@pytest.fixture
def settings():
    return Settings(grace_delay=0.01, max_upload_bytes=1024)


@pytest.fixture
def coordinator(state, events):
    return ShutdownCoordinator(cleanup=[state.stop], on_event=events)


@pytest.fixture
def send_client(state, coordinator, relay, settings, events):
    app = create_send_app(state, coordinator, relay, settings, events)
    app.testing = True
    return app.test_client()


# ----------------------------
# SEND mode
# ----------------------------

def test_info(state, send_client, sample_file):
    state.start([sample_file], limit=2, password="pw")

    data = send_client.get("/api/info").get_json()

    assert data["filename"] == "report.txt"
    assert data["size"] == sample_file.stat().st_size
    assert data["limit"] == 2
    assert data["current"] == 0
    assert data["hasPassword"] is True
    assert data["expiry"] == 0


def test_info_without_session_is_gone(send_client):
    assert send_client.get("/api/info").status_code == 410


def test_landing_page(state, send_client, sample_file):
    state.start([sample_file])

    resp = send_client.get("/")

    assert resp.status_code == 200
    assert b"report.txt" in resp.data


def test_download_streams_file_with_headers(state, send_client, sample_file, events):
    state.start([sample_file], limit=0)

    resp = send_client.get("/download", buffered=True)

    assert resp.status_code == 200
    assert resp.data == sample_file.read_bytes()
    assert resp.headers["Content-Type"].startswith("text/plain")
    assert resp.headers["Content-Disposition"] == (
        "attachment; filename=\"report.txt\"; filename*=UTF-8''report.txt"
    )
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert resp.headers["Cache-Control"] == "no-cache, no-store, must-revalidate"
    assert resp.headers["Pragma"] == "no-cache"
    assert resp.headers["Expires"] == "0"
    assert "download_started" in events.names()
    assert events.payloads("transfer-progress")[-1]["percent"] == 100


def test_limit_reached_then_gone_then_shutdown(state, send_client, coordinator, sample_file):
    state.start([sample_file], limit=1)

    first = send_client.get("/download", buffered=True)
    second = send_client.get("/download", buffered=True)

    assert first.status_code == 200
    assert second.status_code == 410
    assert coordinator.wait(5)
    assert coordinator.reason == LIMIT_REACHED
    assert state.active is None


def test_failed_open_on_last_slot_still_shuts_down(state, send_client, coordinator, sample_file):
    state.start([sample_file], limit=1)
    sample_file.unlink()

    first = send_client.get("/download")
    second = send_client.get("/download")

    assert first.status_code == 500
    assert second.status_code == 410
    assert coordinator.wait(5)
    assert coordinator.reason == LIMIT_REACHED


def test_empty_file_reports_completion(state, send_client, tmp_path, events):
    empty = tmp_path / "empty.bin"
    empty.write_bytes(b"")
    state.start([empty])

    resp = send_client.get("/download", buffered=True)

    assert resp.status_code == 200
    assert resp.data == b""
    assert events.payloads("transfer-progress") == [{"percent": 100, "transferred": 0, "total": 0}]


def test_expired_download_is_gone(state, send_client, sample_file, clock):
    state.start([sample_file], ttl=10)
    clock.advance(11)

    resp = send_client.get("/download")

    assert resp.status_code == 410
    assert b"Expired" in resp.data


def test_password_required(state, send_client, sample_file):
    state.start([sample_file], password="s3cret")

    assert send_client.get("/download").status_code == 401
    assert send_client.get("/download", headers={"X-Auth-Token": "wrong"}).status_code == 401
    assert state.snapshot()["current"] == 0

    ok = send_client.get("/download", headers={"X-Auth-Token": "s3cret"}, buffered=True)
    assert ok.status_code == 200
    ok = send_client.get("/download?code=s3cret", buffered=True)
    assert ok.status_code == 200


def test_verify_sets_session_cookie(state, send_client, sample_file):
    state.start([sample_file], password="s3cret")

    assert send_client.post("/api/verify", json={"code": "nope"}).get_json() == {"success": False}
    assert send_client.get("/download").status_code == 401

    assert send_client.post("/api/verify", json={"code": "s3cret"}).get_json() == {"success": True}
    assert send_client.get("/download", buffered=True).status_code == 200


def test_verification_does_not_carry_over_to_new_session(state, send_client, sample_file):
    state.start([sample_file], password="s3cret")
    send_client.post("/api/verify", json={"code": "s3cret"})

    state.start([sample_file], password="other")

    assert send_client.get("/download").status_code == 401


def test_verify_malformed_body(state, send_client, sample_file):
    state.start([sample_file], password="pw")

    assert send_client.post("/api/verify", data="not json").status_code == 400
    assert send_client.post("/api/verify", json=["pw"]).status_code == 400
    assert send_client.post("/api/verify", json={"code": 42}).status_code == 400


def test_archive_download(state, send_client, inputs):
    state.start([inputs / "a.txt", inputs / "b.txt"])

    resp = send_client.get("/download", buffered=True)

    assert resp.status_code == 200
    assert resp.headers["Content-Type"] == "application/zip"
    assert resp.data[:2] == b"PK"


# ----------------------------
# RECEIVE mode
# ----------------------------

@pytest.fixture
def save_dir(tmp_path):
    d = tmp_path / "inbox"
    d.mkdir()
    return d


@pytest.fixture
def receive_client(save_dir, relay, settings, events):
    app = create_receive_app(save_dir, relay, settings, events)
    app.testing = True
    return app.test_client()


def upload(client, data: bytes, name: str, **kwargs):
    return client.post(
        "/upload",
        data={"file": (io.BytesIO(data), name)},
        content_type="multipart/form-data",
        **kwargs,
    )


def test_upload_saves_file(receive_client, save_dir, events):
    resp = upload(receive_client, b"payload", "hello.txt")

    assert resp.status_code == 201
    body = resp.get_json()
    assert body["saved_as"] == "hello.txt"
    assert body["size_bytes"] == 7
    assert (save_dir / "hello.txt").read_bytes() == b"payload"
    assert events.payloads("file-received") == [{"filename": "hello.txt"}]
    assert not list(save_dir.glob("*.part"))


def test_upload_dedupes_names(receive_client, save_dir):
    upload(receive_client, b"one", "hello.txt")
    resp = upload(receive_client, b"two", "hello.txt")

    assert resp.get_json()["saved_as"] == "hello (1).txt"
    assert (save_dir / "hello.txt").read_bytes() == b"one"


def test_concurrent_uploads_with_same_name_keep_every_file(save_dir, relay, settings):
    app = create_receive_app(save_dir, relay, settings)
    barrier = threading.Barrier(8)
    results = []

    def worker(i):
        client = app.test_client()
        barrier.wait()
        results.append(upload(client, f"upload-{i}".encode(), "same.txt").get_json()["saved_as"])

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(set(results)) == 8
    contents = sorted(p.read_bytes() for p in save_dir.iterdir())
    assert contents == sorted(f"upload-{i}".encode() for i in range(8))


def test_upload_overwrite(save_dir, relay, settings):
    client = create_receive_app(save_dir, relay, settings, overwrite=True).test_client()
    upload(client, b"one", "hello.txt")
    upload(client, b"two", "hello.txt")

    assert (save_dir / "hello.txt").read_bytes() == b"two"


def test_upload_html_response_for_browsers(receive_client):
    resp = upload(receive_client, b"x", "page.txt", headers={"Accept": "text/html"})

    assert resp.status_code == 200
    assert b"FILE SENT!" in resp.data


def test_upload_sanitizes_filename(receive_client, save_dir):
    resp = upload(receive_client, b"x", "../../etc/passwd")

    assert resp.status_code == 201
    assert (save_dir / "etc_passwd").exists()


def test_upload_raw_body(receive_client, save_dir):
    resp = receive_client.post("/upload?filename=raw.bin", data=b"\x00\x01\x02")

    assert resp.status_code == 201
    assert (save_dir / "raw.bin").read_bytes() == b"\x00\x01\x02"


def test_upload_missing_file(receive_client):
    assert receive_client.post("/upload", data={}).status_code == 400


def test_upload_too_large(receive_client, save_dir):
    resp = upload(receive_client, b"x" * 4096, "big.bin")

    assert resp.status_code == 400
    assert not (save_dir / "big.bin").exists()


def test_receive_requires_existing_dir(tmp_path, relay):
    with pytest.raises(ValidationError):
        create_receive_app(tmp_path / "missing", relay)


# ----------------------------
# Clipboard routes
# ----------------------------

def test_clipboard_routes(relay, clipboard):
    client = create_clipboard_app(relay).test_client()

    resp = client.post("/clipboard", data={"text": "from phone"})
    assert resp.status_code == 303
    assert resp.headers["Location"].endswith("/clipboard")
    assert clipboard.value == "from phone"

    clipboard.value = "from host"
    assert client.get("/clipboard-data").data == b"from host"
    assert client.get("/clipboard-history").get_json() == ["from phone"]

    page = client.get("/clipboard")
    assert page.status_code == 200
    assert b"from phone" in page.data


def test_clipboard_history_json_escapes(relay):
    relay.add_to_history('quote " and \\ backslash')
    client = create_clipboard_app(relay).test_client()

    assert client.get("/clipboard-history").get_json() == ['quote " and \\ backslash']


def test_clipboard_post_without_text(relay):
    client = create_clipboard_app(relay).test_client()

    assert client.post("/clipboard", data={}).status_code == 400


def test_clipboard_root_redirects(relay):
    client = create_clipboard_app(relay).test_client()

    resp = client.get("/")
    assert resp.status_code == 303
    assert resp.headers["Location"].endswith("/clipboard")


def test_send_app_has_clipboard_routes(send_client):
    assert send_client.get("/clipboard-history").get_json() == []
