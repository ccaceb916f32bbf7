import logging
import os
import secrets
import tempfile
import threading
from pathlib import Path
from typing import Callable

from flask import (
    Flask,
    jsonify,
    redirect,
    render_template_string,
    request,
    session as cookie,
    url_for,
)
from werkzeug.exceptions import RequestEntityTooLarge
from werkzeug.utils import secure_filename

from .clipboard import ClipboardRelay
from .config import CHUNK_SIZE, Settings
from .delivery import build_download_response, reached_limit
from .errors import (
    PasswordRejected,
    SessionStopped,
    StateError,
    TransferError,
    TransferIOError,
    UploadError,
    ValidationError,
)
from .progress import ProgressTracker
from .session import SessionState
from .shutdown import LIMIT_REACHED, ShutdownCoordinator
from .templates import BASE_CSS, CLIPBOARD_HTML, RECEIVE_HTML, SEND_HTML, UPLOAD_DONE_HTML
from .utils import dedupe_path, ensure_within_dir, format_bytes

logger = logging.getLogger(__name__)

EventSink = Callable[[str, dict], None]


def _no_events(name: str, payload: dict) -> None:
    pass


# ----------------------------
# Shared helpers
# ----------------------------

def wants_json_response() -> bool:
    if request.args.get("json") in ("1", "true", "yes"):
        return True

    accept = request.headers.get("Accept", "")
    xrw = request.headers.get("X-Requested-With", "")

    if "application/json" in accept:
        return True
    if xrw.lower() == "xmlhttprequest":
        return True
    if "text/html" not in accept:
        return True
    return False


def _new_app() -> Flask:
    app = Flask(__name__)
    app.config["SECRET_KEY"] = secrets.token_hex(32)

    @app.errorhandler(TransferError)
    def handle_transfer_error(e: TransferError):
        if isinstance(e, (StateError, ValidationError)):
            logger.info("%s %s -> %d %s", request.method, request.path, e.status_code, e)
        else:
            logger.error("%s %s failed: %s", request.method, request.path, e)
        return str(e), e.status_code, {"Content-Type": "text/plain; charset=utf-8"}

    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(e):
        return "File too big or invalid", 400

    return app


def register_clipboard_routes(app: Flask, relay: ClipboardRelay) -> None:
    @app.route("/clipboard", methods=["GET", "POST"], endpoint="clipboard_page")
    def clipboard_page():
        if request.method == "POST":
            text = request.form.get("text")
            if text is None:
                raise ValidationError("Missing form field 'text'")
            relay.publish(text)
            return redirect(url_for("clipboard_page"), code=303)
        return render_template_string(CLIPBOARD_HTML, css=BASE_CSS, history=relay.history())

    @app.route("/clipboard-data", methods=["GET"], endpoint="clipboard_data")
    def clipboard_data():
        return relay.current(), 200, {"Content-Type": "text/plain; charset=utf-8"}

    @app.route("/clipboard-history", methods=["GET"], endpoint="clipboard_history")
    def clipboard_history():
        return jsonify(relay.history())


# ----------------------------
# SEND mode
# ----------------------------

def create_send_app(
    state: SessionState,
    coordinator: ShutdownCoordinator,
    relay: ClipboardRelay,
    settings: Settings | None = None,
    on_event: EventSink | None = None,
) -> Flask:
    settings = settings or Settings()
    emit = on_event or _no_events
    app = _new_app()
    register_clipboard_routes(app, relay)

    def require_code_if_set(session) -> None:
        if not session.has_password:
            return
        if cookie.get("verified") == session.id:
            return
        code = request.headers.get("X-Auth-Token") or request.args.get("code")
        if code is None or not state.authorize(code):
            raise PasswordRejected()

    def after_transfer(grant, tracker: ProgressTracker | None) -> None:
        if reached_limit(grant):
            logger.info("Download limit reached (%d)", grant.session.limit)
            coordinator.schedule(settings.grace_delay, LIMIT_REACHED)

    @app.route("/", methods=["GET"], endpoint="send_index")
    def send_index():
        session = state.active
        if session is None:
            raise SessionStopped()
        return render_template_string(
            SEND_HTML,
            css=BASE_CSS,
            name=session.name,
            size=format_bytes(session.size),
            has_password=session.has_password,
        )

    @app.route("/api/info", methods=["GET"], endpoint="api_info")
    def api_info():
        info = state.snapshot()
        if info is None:
            raise SessionStopped()
        return jsonify(info)

    @app.route("/api/verify", methods=["POST"], endpoint="api_verify")
    def api_verify():
        body = request.get_json(silent=True)
        if not isinstance(body, dict) or not isinstance(body.get("code", ""), str):
            raise ValidationError("Invalid request")
        session = state.active
        success = state.authorize(body.get("code", ""))
        if success and session is not None:
            cookie["verified"] = session.id
        return jsonify({"success": success})

    @app.route("/download", methods=["GET"], endpoint="download")
    def download():
        session = state.active
        if session is None:
            raise SessionStopped()
        require_code_if_set(session)

        result = state.try_consume_slot()
        if not result.granted:
            raise result.error()
        if result.session.id != session.id:
            result.release()
            raise SessionStopped()

        logger.info(
            "[%d/%s] Sending %s to %s",
            result.sequence,
            session.limit or "-",
            session.name,
            request.remote_addr,
        )
        emit("download_started", {"ip": request.remote_addr})
        try:
            return build_download_response(
                result,
                on_progress=lambda obs: emit("transfer-progress", obs.as_dict()),
                on_close=after_transfer,
            )
        except TransferIOError:
            # the last slot is spent even though nothing was sent
            after_transfer(result, None)
            raise

    return app


# ----------------------------
# RECEIVE mode
# ----------------------------

def _stream_size(stream) -> int | None:
    try:
        pos = stream.tell()
        stream.seek(0, os.SEEK_END)
        size = stream.tell()
        stream.seek(pos)
    except (AttributeError, OSError, ValueError):
        return None
    return size - pos


def create_receive_app(
    save_dir: Path,
    relay: ClipboardRelay,
    settings: Settings | None = None,
    on_event: EventSink | None = None,
    overwrite: bool = False,
) -> Flask:
    settings = settings or Settings()
    emit = on_event or _no_events
    save_dir = Path(save_dir)
    if not save_dir.is_dir():
        raise ValidationError(f"save directory does not exist: {save_dir}")

    app = _new_app()
    app.config["SAVE_DIR"] = str(save_dir)
    app.config["MAX_CONTENT_LENGTH"] = settings.max_upload_bytes
    register_clipboard_routes(app, relay)
    # picking a free name and renaming onto it must not interleave
    name_lock = threading.Lock()

    @app.route("/", methods=["GET"], endpoint="receive_index")
    def receive_index():
        return render_template_string(RECEIVE_HTML, css=BASE_CSS)

    @app.route("/upload", methods=["POST"], endpoint="upload")
    def upload():
        if request.files.get("file"):
            f = request.files["file"]
            raw_name = f.filename or ""
            data_stream = f.stream
            total = _stream_size(data_stream)
        else:
            raw_name = request.args.get("filename", "")
            data_stream = request.stream
            total = request.content_length
        if not raw_name:
            raise ValidationError("No file selected")

        safe_name = secure_filename(raw_name)
        if not safe_name:
            raise ValidationError("Invalid filename")

        dest = save_dir / safe_name
        ensure_within_dir(save_dir, dest)

        tracker = ProgressTracker(
            total or 0, lambda obs: emit("transfer-progress", obs.as_dict())
        )
        reader = tracker.reader(data_stream)
        tmp = None
        try:
            with tempfile.NamedTemporaryFile(
                dir=save_dir, prefix=f".{safe_name}.", suffix=".part", delete=False
            ) as out:
                tmp = Path(out.name)
                for chunk in iter(lambda: reader.read(CHUNK_SIZE), b""):
                    out.write(chunk)
            with name_lock:
                if not overwrite:
                    dest = dedupe_path(dest)
                os.replace(tmp, dest)
        except OSError as e:
            if tmp is not None:
                tmp.unlink(missing_ok=True)
            raise UploadError(f"Error saving file: {e.strerror or e}") from e
        except BaseException:
            # client went away or sent a bad body; drop the partial file
            if tmp is not None:
                tmp.unlink(missing_ok=True)
            raise

        size_bytes = dest.stat().st_size
        logger.info("Received %s (%s) from %s", dest.name, format_bytes(size_bytes), request.remote_addr)
        emit("file-received", {"filename": dest.name})

        if wants_json_response():
            return jsonify(
                {
                    "ok": True,
                    "original_filename": raw_name,
                    "saved_as": dest.name,
                    "size_bytes": size_bytes,
                }
            ), 201
        return render_template_string(
            UPLOAD_DONE_HTML, css=BASE_CSS, name=dest.name, size=format_bytes(size_bytes)
        )

    return app


# ----------------------------
# CLIPBOARD mode
# ----------------------------

def create_clipboard_app(relay: ClipboardRelay) -> Flask:
    app = _new_app()
    register_clipboard_routes(app, relay)

    @app.route("/", methods=["GET"], endpoint="clipboard_index")
    def clipboard_index():
        return redirect(url_for("clipboard_page"), code=303)

    return app
