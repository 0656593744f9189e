from typing import Callable, Protocol

from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header

from .errors import MalformedUpload, PayloadTooLarge, UnsupportedMediaType
from .files import sanitize_filename


class Sink(Protocol):
    def write(self, data: bytes) -> None:
        ...


def parse_boundary(content_type: str | None) -> bytes:
    media_type, params = parse_options_header(content_type or "")
    if media_type.lower() != b"multipart/form-data":
        raise UnsupportedMediaType("Content-Type must be multipart/form-data")
    boundary = params.get(b"boundary", b"")
    if not boundary:
        raise MalformedUpload("Missing multipart boundary")
    return boundary


def _decode(raw: bytes) -> str:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw.decode("latin-1")


class UploadParser:
    """Pulls the single file part out of a multipart/form-data body.

    Works on raw bytes: the file content is streamed to the sink exactly as
    sent, whatever it contains. Parts without a ``filename`` are skipped, as
    is any file part after the first one.
    """

    def __init__(self, boundary: bytes, sink_factory: Callable[[], Sink], *, max_bytes: int | None = None) -> None:
        self._sink_factory = sink_factory
        self._max_bytes = max_bytes
        self._received = 0
        self._sink: Sink | None = None
        self._filename: str | None = None
        self._in_file = False
        self._ended = False
        self._field = bytearray()
        self._value = bytearray()
        self._headers: dict[bytes, bytes] = {}
        self._parser = MultipartParser(
            boundary,
            callbacks={
                "on_part_begin": self._on_part_begin,
                "on_header_field": self._on_header_field,
                "on_header_value": self._on_header_value,
                "on_header_end": self._on_header_end,
                "on_headers_finished": self._on_headers_finished,
                "on_part_data": self._on_part_data,
                "on_part_end": self._on_part_end,
                "on_end": self._on_end,
            },
        )

    @property
    def sink(self) -> Sink | None:
        return self._sink

    def write(self, chunk: bytes) -> None:
        self._received += len(chunk)
        if self._max_bytes is not None and self._received > self._max_bytes:
            raise PayloadTooLarge(f"upload exceeds {self._max_bytes} bytes")
        try:
            self._parser.write(chunk)
        except MultipartParseError as e:
            raise MalformedUpload(f"Malformed multipart body: {e}") from e

    def finish(self) -> tuple[str, Sink]:
        """Return the sanitized filename and the sink holding the file content."""
        self._parser.finalize()
        if self._filename is None or self._sink is None:
            raise MalformedUpload("No file found in upload")
        if not self._ended:
            raise MalformedUpload("Malformed multipart body: missing closing boundary")
        return sanitize_filename(self._filename), self._sink

    def _on_part_begin(self) -> None:
        self._headers = {}

    def _on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._field += data[start:end]

    def _on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._value += data[start:end]

    def _on_header_end(self) -> None:
        self._headers[bytes(self._field).strip().lower()] = bytes(self._value).strip()
        self._field.clear()
        self._value.clear()

    def _on_headers_finished(self) -> None:
        if self._filename is not None:
            return
        disposition = self._headers.get(b"content-disposition")
        if not disposition:
            return
        _, params = parse_options_header(disposition)
        if b"filename" not in params:
            return
        self._filename = _decode(params[b"filename"])
        self._sink = self._sink_factory()
        self._in_file = True

    def _on_part_data(self, data: bytes, start: int, end: int) -> None:
        if self._in_file and self._sink is not None:
            self._sink.write(bytes(data[start:end]))

    def _on_part_end(self) -> None:
        self._in_file = False

    def _on_end(self) -> None:
        self._ended = True
