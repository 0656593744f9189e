import logging
import os
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterator

from .errors import MalformedUpload, StoredFileNotFound, UnsafeFilename

logger = logging.getLogger(__name__)

PARTIAL_DIR = ".partial"
CHUNK = 1024 * 1024

_SEPARATORS_RE = re.compile(r"[\\/]")
_DRIVE_RE = re.compile(r"^[A-Za-z]:")

MIME_TYPES: dict[str, str] = {
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    ".pdf": "application/pdf",
    ".doc": "application/msword",
    ".xls": "application/vnd.ms-excel",
    ".ppt": "application/vnd.ms-powerpoint",
    ".odt": "application/vnd.oasis.opendocument.text",
    ".ods": "application/vnd.oasis.opendocument.spreadsheet",
    ".odp": "application/vnd.oasis.opendocument.presentation",
    ".txt": "text/plain",
    ".rtf": "application/rtf",
    ".csv": "text/csv",
}


def guess_mime_type(name: str) -> str:
    return MIME_TYPES.get(Path(name).suffix.lower(), "application/octet-stream")


def sanitize_filename(name: str) -> str:
    """Reduce a client supplied filename to its base name.

    Both slash styles count as separators and a leading drive letter is
    dropped, so ``../../evil.txt``, ``sub/dir/name.txt`` and
    ``C:\\temp\\x.docx`` all collapse to their last segment.
    """
    base = _SEPARATORS_RE.split(name)[-1]
    base = _DRIVE_RE.sub("", base).strip()
    if not base or base in {".", ".."} or ".." in base or "\x00" in base:
        raise MalformedUpload("Invalid filename")
    return base


@dataclass(frozen=True)
class StoredFile:
    name: str
    path: Path
    size: int


class PendingFile:
    """Upload being written to a temporary file until it is committed under its final name."""

    def __init__(self, handle: BinaryIO, path: Path) -> None:
        self._handle = handle
        self.path = path
        self.size = 0

    def write(self, data: bytes) -> None:
        self._handle.write(data)
        self.size += len(data)

    def close(self) -> None:
        if not self._handle.closed:
            self._handle.flush()
            os.fsync(self._handle.fileno())
            self._handle.close()

    def discard(self) -> None:
        if not self._handle.closed:
            self._handle.close()
        self.path.unlink(missing_ok=True)


class FileStore:
    """Flat directory of uploaded files, addressed by base name only."""

    def __init__(self, root: str | Path) -> None:
        root_path = Path(root)
        root_path.mkdir(parents=True, exist_ok=True)
        self.root = root_path.resolve()
        self._partial = self.root / PARTIAL_DIR
        self._partial.mkdir(exist_ok=True)

    def resolve(self, name: str) -> Path:
        """Map a stored file name to its path, refusing anything that could leave the root."""
        if (
            not name
            or ".." in name
            or "/" in name
            or "\\" in name
            or "\x00" in name
            or _DRIVE_RE.match(name)
            or Path(name).is_absolute()
        ):
            raise UnsafeFilename(f"Unsafe filename: {name!r}")
        candidate = (self.root / name).resolve()
        # is_relative_to compares whole path segments, so /data/store-evil is not inside /data/store
        if candidate == self.root or not candidate.is_relative_to(self.root):
            raise UnsafeFilename(f"Unsafe filename: {name!r}")
        return candidate

    def create_pending(self) -> PendingFile:
        fd, tmp = tempfile.mkstemp(dir=self._partial, prefix="upload-")
        return PendingFile(os.fdopen(fd, "wb"), Path(tmp))

    def commit(self, pending: PendingFile, name: str) -> StoredFile:
        """Publish a finished upload under ``name``, replacing any previous file atomically."""
        try:
            safe_name = sanitize_filename(name)
            target = self.resolve(safe_name)
            if target.is_dir():
                raise MalformedUpload("Invalid filename")
            pending.close()
            os.replace(pending.path, target)
        except BaseException:
            pending.discard()
            raise
        logger.info("File uploaded: %s (%d bytes)", safe_name, pending.size)
        return StoredFile(name=safe_name, path=target, size=pending.size)

    def save(self, name: str, data: bytes) -> StoredFile:
        pending = self.create_pending()
        try:
            pending.write(data)
        except BaseException:
            pending.discard()
            raise
        return self.commit(pending, name)

    def open(self, name: str) -> tuple[StoredFile, BinaryIO]:
        path = self.resolve(name)
        try:
            handle = path.open("rb")
        except (FileNotFoundError, IsADirectoryError, PermissionError) as e:
            raise StoredFileNotFound("File not found") from e
        size = os.fstat(handle.fileno()).st_size
        return StoredFile(name=name, path=path, size=size), handle

    def read(self, name: str) -> bytes:
        _, handle = self.open(name)
        with handle:
            return handle.read()


def iter_file(handle: BinaryIO, chunk_size: int = CHUNK) -> Iterator[bytes]:
    with handle:
        while True:
            chunk = handle.read(chunk_size)
            if not chunk:
                break
            yield chunk
