import logging

import requests

from .errors import ConversionError, ConversionRequestFailed, OperationCancelled, ResultDownloadFailed, UploadFailed, snippet
from .interfaces import ConversionResult, EngineGateway, JobDescriptor, StorageGateway

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 120


def _transport_error(e: requests.RequestException, error: type[ConversionError], message: str) -> ConversionError:
    if isinstance(e, requests.Timeout):
        return OperationCancelled(f"{message}: timed out ({e})")
    return error(f"{message}: {e}")


class _HttpAdapter:
    def __init__(self, base_url: str, session: requests.Session | None = None, timeout: float = DEFAULT_TIMEOUT) -> None:
        self._base = base_url.rstrip("/")
        self._session = session or requests.Session()
        self._timeout = timeout

    @property
    def base_url(self) -> str:
        return self._base

    def close(self) -> None:
        self._session.close()


class SidecarStorage(_HttpAdapter, StorageGateway):
    """Uploads source documents to the storage sidecar's ``/upload`` endpoint."""

    def upload(self, data: bytes, filename: str) -> str:
        endpoint = f"{self._base}/upload"
        logger.info("Uploading %s (%d bytes) to %s", filename, len(data), endpoint)
        files = {"file": (filename, data, "application/octet-stream")}
        try:
            resp = self._session.post(endpoint, files=files, timeout=self._timeout)
        except requests.RequestException as e:
            raise _transport_error(e, UploadFailed, "File upload failed") from e
        if not resp.ok:
            raise UploadFailed(f"File upload failed with status {resp.status_code}: {snippet(resp.text)}")
        try:
            payload = resp.json()
        except ValueError as e:
            raise UploadFailed("Upload failed: storage server returned invalid JSON") from e
        file_url = payload.get("fileUrl") if isinstance(payload, dict) else None
        if not file_url:
            raise UploadFailed("Upload failed: No file URL returned from storage server")
        logger.info("File uploaded successfully. URL: %s", file_url)
        return str(file_url)


class DocumentServerEngine(_HttpAdapter, EngineGateway):
    """Talks to a document server exposing the ``/converter`` API."""

    def submit(self, descriptor: JobDescriptor) -> ConversionResult:
        endpoint = f"{self._base}/converter"
        logger.info(
            "Sending conversion request to %s (filetype=%s outputtype=%s token=%s)",
            endpoint,
            descriptor.filetype,
            descriptor.outputtype,
            descriptor.token is not None,
        )
        try:
            resp = self._session.post(
                endpoint,
                json=descriptor.to_request(),
                headers={"Accept": "application/json"},
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise _transport_error(e, ConversionRequestFailed, "Conversion request failed") from e
        if not resp.ok:
            raise ConversionRequestFailed(
                f"Conversion failed with status {resp.status_code}: {snippet(resp.text)}",
                status_code=resp.status_code,
                body=resp.text,
            )
        try:
            payload = resp.json()
        except ValueError as e:
            raise ConversionRequestFailed(
                f"Conversion response is not JSON: {snippet(resp.text)}",
                status_code=resp.status_code,
                body=resp.text,
            ) from e
        if not isinstance(payload, dict):
            raise ConversionRequestFailed("Conversion response is not a JSON object", status_code=resp.status_code, body=resp.text)
        logger.debug("Conversion response: %s", payload)
        return ConversionResult.from_json(payload)

    def download(self, url: str) -> bytes:
        logger.info("Downloading converted file from: %s", url)
        try:
            resp = self._session.get(url, timeout=self._timeout)
        except requests.RequestException as e:
            raise _transport_error(e, ResultDownloadFailed, "Result download failed") from e
        if not resp.ok:
            raise ResultDownloadFailed(f"Result download failed with status {resp.status_code}: {snippet(resp.text)}")
        return resp.content
