"""Bundle several inputs (or one directory) into a single zip to share."""

import logging
import os
import tempfile
import zipfile
from dataclasses import dataclass, field
from pathlib import Path

from .config import CHUNK_SIZE
from .errors import ArchiveError
from .utils import dedupe_name

logger = logging.getLogger(__name__)

MULTI_INPUT_NAME = "archive.zip"
TRUNCATED_COMMENT = b"lanshare: read failed, entry truncated"


@dataclass
class Archive:
    sources: list[str]
    path: str
    name: str
    temporary: bool = True
    skipped: list[tuple[str, str]] = field(default_factory=list)

    def remove(self) -> None:
        if self.temporary:
            try:
                os.remove(self.path)
            except FileNotFoundError:
                pass


def needs_archive(paths) -> bool:
    return len(paths) > 1 or (len(paths) == 1 and os.path.isdir(paths[0]))


def archive_name(paths) -> str:
    if len(paths) == 1:
        return f"{Path(paths[0]).name or 'archive'}.zip"
    return MULTI_INPUT_NAME


def build_archive(paths, tmp_dir: str | None = None) -> Archive:
    """Zip every input into a fresh temporary file.

    A sole directory is stored relative to its own root; with several inputs
    each one is stored under its base name. Unreadable entries are logged,
    listed in ``Archive.skipped`` and left out; a file whose read fails
    midway stays in the archive truncated, carries the entry comment
    ``TRUNCATED_COMMENT`` and is listed in ``skipped`` too. The build still
    succeeds.
    Only failing to create the container raises ``ArchiveError``.
    """
    sources = [os.fspath(p) for p in paths]
    try:
        fd, out_path = tempfile.mkstemp(prefix="lanshare-", suffix=".zip", dir=tmp_dir)
    except OSError as e:
        raise ArchiveError(f"cannot create archive: {e}") from e

    archive = Archive(sources=sources, path=out_path, name=archive_name(sources))
    try:
        with os.fdopen(fd, "wb") as fh, zipfile.ZipFile(
            fh, "w", compression=zipfile.ZIP_DEFLATED
        ) as zf:
            writer = _ZipWriter(zf, archive.skipped)
            if len(sources) == 1 and os.path.isdir(sources[0]):
                writer.add_tree(Path(sources[0]), "")
            else:
                taken: set[str] = set()
                for src in sources:
                    p = Path(src)
                    top = dedupe_name(p.name or "input", taken)
                    taken.add(top)
                    writer.add(p, top)
    except OSError as e:
        archive.remove()
        raise ArchiveError(f"cannot write archive: {e}") from e

    if archive.skipped:
        logger.warning(
            "Archive %s built with %d skipped entr%s",
            archive.path,
            len(archive.skipped),
            "y" if len(archive.skipped) == 1 else "ies",
        )
    return archive


class _ZipWriter:
    def __init__(self, zf: zipfile.ZipFile, skipped: list[tuple[str, str]]):
        self.zf = zf
        self.skipped = skipped
        self._branch: set[str] = set()

    def _skip(self, path: Path, reason: str) -> None:
        logger.warning("Failed to add %s: %s", path, reason)
        self.skipped.append((str(path), reason))

    def add(self, path: Path, arcname: str) -> None:
        if path.is_dir():
            self._add_dir_entry(path, arcname + "/")
            self.add_tree(path, arcname + "/")
        elif path.exists():
            self._add_file(path, arcname)
        else:
            self._skip(path, "no such file or directory")

    def add_tree(self, root: Path, prefix: str) -> None:
        """Walk ``root`` depth first, naming entries ``prefix + relative``."""
        real = os.path.realpath(root)
        if real in self._branch:
            self._skip(root, "symbolic link cycle")
            return
        self._branch.add(real)
        try:
            try:
                with os.scandir(root) as it:
                    children = sorted(it, key=lambda e: e.name)
            except OSError as e:
                self._skip(root, e.strerror or str(e))
                return
            for entry in children:
                child = Path(entry.path)
                arcname = prefix + entry.name
                try:
                    is_dir = entry.is_dir()
                except OSError as e:
                    self._skip(child, e.strerror or str(e))
                    continue
                if is_dir:
                    if os.path.realpath(child) in self._branch:
                        self._skip(child, "symbolic link cycle")
                        continue
                    self._add_dir_entry(child, arcname + "/")
                    self.add_tree(child, arcname + "/")
                else:
                    self._add_file(child, arcname)
        finally:
            self._branch.discard(real)

    def _add_dir_entry(self, path: Path, arcname: str) -> None:
        try:
            info = zipfile.ZipInfo.from_file(path, arcname)
        except OSError as e:
            self._skip(path, e.strerror or str(e))
            return
        self.zf.writestr(info, b"")

    def _add_file(self, path: Path, arcname: str) -> None:
        if not path.is_file():
            self._skip(path, "not a regular file")
            return
        try:
            info = zipfile.ZipInfo.from_file(path, arcname)
            src = open(path, "rb")
        except OSError as e:
            self._skip(path, e.strerror or str(e))
            return
        info.compress_type = zipfile.ZIP_DEFLATED
        with src, self.zf.open(info, "w") as dst:
            while True:
                try:
                    chunk = src.read(CHUNK_SIZE)
                except OSError as e:
                    self._skip(path, f"read failed, entry truncated: {e.strerror or e}")
                    # the central directory is written on close, so the comment still lands
                    info.comment = TRUNCATED_COMMENT
                    break
                if not chunk:
                    break
                dst.write(chunk)
