import asyncio
import logging
from urllib.parse import quote

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from doc_relay import __version__
from doc_relay.config import StorageSettings
from doc_relay.storage import FileStore, StorageError, UploadParser, guess_mime_type, iter_file, parse_boundary

logger = logging.getLogger("doc_relay.storage.api")

SERVICE_NAME = "Document Relay Storage Server"


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def create_app(settings: StorageSettings | None = None) -> FastAPI:
    """Build the storage sidecar application.

    Files live flat under ``settings.storage_path``; they are written on
    upload, served back by name and never cleaned up by the service.
    ``app.state.public_url`` is the base of the URLs handed back to clients
    and may be replaced once the real listening port is known.
    """
    settings = settings or StorageSettings.from_env()
    app = FastAPI(
        title=SERVICE_NAME,
        version=__version__,
        description="Transient file relay that lets a conversion engine fetch uploaded documents over HTTP.",
    )
    app.state.settings = settings
    app.state.store = FileStore(settings.storage_path)
    app.state.public_url = settings.base_url

    @app.exception_handler(StorageError)
    async def _storage_error(request: Request, exc: StorageError) -> JSONResponse:
        logger.warning("%s %s -> %d %s", request.method, request.url.path, exc.status_code, exc)
        return _error(exc.status_code, str(exc))

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        message = "Not found" if exc.status_code == status.HTTP_404_NOT_FOUND else str(exc.detail)
        return _error(exc.status_code, message)

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Error processing request %s %s", request.method, request.url.path)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))

    @app.get("/")
    def info() -> dict[str, str]:
        return {
            "name": SERVICE_NAME,
            "version": __version__,
            "status": "running",
            "storagePath": str(settings.storage_path),
        }

    @app.get("/health")
    def health() -> dict[str, str]:
        """Liveness probe."""
        return {"status": "healthy"}

    @app.post("/upload")
    async def upload(request: Request) -> JSONResponse:
        """Store the single file part of a multipart/form-data body.

        The file is written under its base name, replacing any previous file
        of that name, and a URL the engine can fetch it from is returned.
        """
        store: FileStore = app.state.store
        boundary = parse_boundary(request.headers.get("content-type"))
        parser = UploadParser(boundary, store.create_pending, max_bytes=settings.max_upload_mb * 1024 * 1024)
        try:
            async for chunk in request.stream():
                if chunk:
                    # the file part is written to disk as it arrives
                    await asyncio.to_thread(parser.write, chunk)
            filename, pending = parser.finish()
        except BaseException:
            if parser.sink is not None:
                await asyncio.to_thread(parser.sink.discard)  # type: ignore[attr-defined]
            raise
        stored = await asyncio.to_thread(store.commit, pending, filename)  # type: ignore[arg-type]
        file_url = f"{app.state.public_url}/files/{quote(stored.name, safe='')}"
        return JSONResponse(content={"fileUrl": file_url, "filename": stored.name})

    @app.get("/files/{name:path}")
    async def download(name: str) -> StreamingResponse:
        store: FileStore = app.state.store
        stored, handle = await asyncio.to_thread(store.open, name)
        logger.info("File downloaded: %s (%d bytes)", stored.name, stored.size)
        return StreamingResponse(
            iter_file(handle),
            media_type=guess_mime_type(stored.name),
            headers={"Content-Length": str(stored.size)},
        )

    return app
