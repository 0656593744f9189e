import logging
import threading
import uuid
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import replace
from pathlib import Path
from typing import Callable, TypeVar

from .errors import ConversionEngineError, ConversionError, ConversionIncomplete, OperationCancelled, SourceNotFound
from .interfaces import EngineGateway, JobDescriptor, StorageGateway
from .signing import sign_fields

logger = logging.getLogger(__name__)

DEFAULT_FILETYPE = "docx"

T = TypeVar("T")

# how often a running step re-checks the cancel events
CANCEL_POLL_S = 0.05


def source_format(filename: str, default: str = DEFAULT_FILETYPE) -> str:
    suffix = Path(filename).suffix.lstrip(".").lower()
    return suffix or default


def default_output_format(extension: str) -> str:
    """Pick the target format for a source extension: office formats go to PDF, PDF goes to DOCX."""
    ext = extension.lstrip(".").lower()
    return "docx" if ext == "pdf" else "pdf"


class ConversionService:
    """Runs one document through upload, conversion and download.

    Every call is a single blocking sequence: one upload to storage, one
    synchronous request to the engine and, on success, one download of the
    result. Nothing is retried; the first failure aborts the call. The
    uploaded source is left on the storage side when a later step fails.
    """

    def __init__(
        self,
        storage: StorageGateway,
        engine: EngineGateway,
        *,
        secret: str = "",
        default_filetype: str = DEFAULT_FILETYPE,
    ) -> None:
        self._storage = storage
        self._engine = engine
        self._secret = secret
        self._default_filetype = default_filetype
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        """Abort in-flight conversions and close the gateways' connections.

        The pending call returns at once with OperationCancelled. Cancelling is
        final: every later ``convert`` on this service is refused, so build a
        new service for further work.
        """
        self._cancelled.set()
        self.close()

    def close(self) -> None:
        for gateway in (self._storage, self._engine):
            close = getattr(gateway, "close", None)
            if callable(close):
                close()

    def convert_file(self, path: str | Path, output_format: str, *, cancel: threading.Event | None = None) -> bytes:
        source = Path(path)
        if not source.is_file():
            raise SourceNotFound(f"Source file not found: {source}")
        return self.convert(source.read_bytes(), source.name, output_format, cancel=cancel)

    def build_descriptor(self, filename: str, output_format: str, url: str) -> JobDescriptor:
        descriptor = JobDescriptor(
            filetype=source_format(filename, self._default_filetype),
            key=str(uuid.uuid4()),
            outputtype=output_format.lower(),
            title=filename,
            url=url,
        )
        token = sign_fields(descriptor.signing_fields(), self._secret)
        if token is None:
            return descriptor
        return replace(descriptor, token=token)

    def convert(self, data: bytes, filename: str, output_format: str, *, cancel: threading.Event | None = None) -> bytes:
        url = self._step(cancel, "upload", lambda: self._storage.upload(data, filename))

        descriptor = self.build_descriptor(filename, output_format, url)
        logger.info(
            "Converting %s (%s -> %s) key=%s",
            filename,
            descriptor.filetype,
            descriptor.outputtype,
            descriptor.key,
        )
        result = self._step(cancel, "convert", lambda: self._engine.submit(descriptor))

        if result.failed:
            raise ConversionEngineError(int(result.error))  # type: ignore[arg-type]
        if not result.file_url:
            raise ConversionIncomplete(result.percent)

        converted = self._step(cancel, "download", lambda: self._engine.download(result.file_url))  # type: ignore[arg-type]
        logger.info("Converted %s: %d bytes", filename, len(converted))
        return converted

    def _is_cancelled(self, cancel: threading.Event | None) -> bool:
        return self._cancelled.is_set() or (cancel is not None and cancel.is_set())

    def _step(self, cancel: threading.Event | None, name: str, fn: Callable[[], T]) -> T:
        """Run one network step on a worker thread so a cancel can abandon it mid-request."""
        if self._is_cancelled(cancel):
            raise OperationCancelled(f"Conversion cancelled before {name}")
        future: Future[T] = Future()

        def run() -> None:
            try:
                future.set_result(fn())
            except BaseException as e:
                future.set_exception(e)

        threading.Thread(target=run, name=f"conversion-{name}", daemon=True).start()
        while True:
            try:
                return future.result(timeout=CANCEL_POLL_S)
            except FutureTimeout:
                if future.done():
                    raise
                if self._is_cancelled(cancel):
                    logger.info("Conversion cancelled during %s", name)
                    raise OperationCancelled(f"Conversion cancelled during {name}") from None
            except ConversionError as e:
                if self._is_cancelled(cancel) and not isinstance(e, OperationCancelled):
                    raise OperationCancelled(f"Conversion cancelled during {name}") from e
                raise
