import argparse
import re
import sys
from datetime import datetime
from pathlib import Path

import qrcode

from .config import Settings
from .errors import TransferError
from .host import TransferHost
from .log import setup_logging

_DURATION = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([smh]?)\s*$")
_UNITS = {"s": 1, "m": 60, "h": 3600, "": 60}


def parse_duration(value: str) -> float:
    """'30s', '10m', '1h' or a bare number of minutes; '0' disables the timeout."""
    m = _DURATION.match(value)
    if not m:
        raise argparse.ArgumentTypeError(f"invalid duration: {value!r} (use e.g. 30s, 10m, 1h)")
    return float(m.group(1)) * _UNITS[m.group(2)]


def default_save_dir() -> Path:
    downloads = Path.home() / "Downloads"
    return downloads if downloads.is_dir() else Path.cwd()

# ----------------------------
# Banner
# ----------------------------

def print_qr(url: str) -> None:
    qr = qrcode.QRCode(border=1)
    qr.add_data(url)
    qr.make(fit=True)
    qr.print_ascii(out=sys.stdout, invert=True)

def print_send_banner(info, code: str | None) -> None:
    session = info.session
    url = f"{info.url}/download"
    name = session.name

    print("----------------------------------------")
    print(f"Hosting: {name}")
    print(f"Downloads Allowed: {session.limit or 'unlimited'}")
    if code:
        print(f"Security Code REQUIRED: {code}")
    if session.expires_at is not None:
        print(f"Expiry Time: {datetime.fromtimestamp(session.expires_at).strftime('%H:%M:%S')}")
    print(f"Share Link: {info.url}")
    print("----------------------------------------")

    hdr = f' -H "X-Auth-Token: {code}"' if code else ""
    wget_hdr = f' --header="X-Auth-Token: {code}"' if code else ""
    ps_hdr = f" -Headers @{{'X-Auth-Token'='{code}'}}" if code else ""
    print("\nDownload commands:")
    print(f'  curl{hdr} -L -o "{name}" "{url}"')
    print(f'  wget{wget_hdr} -O "{name}" "{url}"')
    print(f"  Invoke-WebRequest{ps_hdr} -Uri '{url}' -OutFile '{name}'")
    print()

def print_receive_banner(info) -> None:
    base = info.url
    print("----------------------------------------")
    print(f"Web UI:   {base}/")
    print("Upload (multipart; JSON response):")
    print(f'  curl -F "file=@./path/to/file.zip" "{base}/upload?json=1"')
    print(f"  Invoke-RestMethod -Method Post -Form @{{file=Get-Item './path/to/file.zip'}} -Uri '{base}/upload?json=1'")
    print("Upload (raw bytes; JSON response):")
    print(f'  curl --data-binary "@./path/to/file.zip" "{base}/upload?filename=file.zip&json=1"')
    print("----------------------------------------")
    print()

def print_clipboard_banner(info) -> None:
    print("----------------------------------------")
    print(f"Clipboard relay: {info.url}")
    print("----------------------------------------")
    print()

# ----------------------------
# Main CLI
# ----------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lanshare", description="Ephemeral file and clipboard sharing over the local network."
    )
    parser.add_argument("--host", default=None, help="Address to bind (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=None, help="Preferred port (default: 8080)")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING, ...")
    parser.add_argument("--no-qr", action="store_true", help="Do not print a QR code")
    sub = parser.add_subparsers(dest="mode", required=True)

    p_send = sub.add_parser("send", help="Share files; the server stops when the limit or timeout is hit.")
    p_send.add_argument("paths", nargs="+", help="Files or directories to share (several are zipped)")
    p_send.add_argument("--limit", type=int, default=1, help="Downloads allowed before stopping (0 = unlimited)")
    p_send.add_argument("--code", default="", help="Security code the downloader must enter")
    p_send.add_argument(
        "--timeout", type=parse_duration, default=0.0, help="Share lifetime, e.g. 10m or 1h (0 = none)"
    )

    p_recv = sub.add_parser("receive", help="Accept an upload into a directory.")
    p_recv.add_argument("--save-dir", type=Path, default=None, help="Where uploads go (default: ~/Downloads)")
    p_recv.add_argument("--overwrite", action="store_true", help="Overwrite existing files (default is dedupe)")

    sub.add_parser("clipboard", help="Relay clipboard text with a paired device.")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    settings = Settings.from_env()
    if args.host is not None:
        settings.host = args.host
    if args.log_level is not None:
        settings.log_level = args.log_level
    setup_logging(settings.log_level)

    host = TransferHost(settings)
    try:
        if args.mode == "send":
            info = host.start_send(
                args.paths, port=args.port, password=args.code, limit=args.limit, ttl=args.timeout
            )
            print_send_banner(info, args.code)
        elif args.mode == "receive":
            info = host.start_receive(args.save_dir or default_save_dir(), port=args.port, overwrite=args.overwrite)
            print_receive_banner(info)
        else:
            info = host.start_clipboard(port=args.port)
            print_clipboard_banner(info)
    except TransferError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if not args.no_qr:
        print_qr(info.url)
    print("Press Ctrl+C to stop the server")

    try:
        while not host.wait(0.5):
            pass
    except KeyboardInterrupt:
        print("\nShutting down server...")
        host.stop()
    print("Goodbye!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
