import logging
import socket
import threading
import time

import uvicorn

from doc_relay.config import StorageSettings, configure_logging
from doc_relay.webapi import create_app

logger = logging.getLogger(__name__)


class StorageServer:
    """Storage sidecar running on a background thread.

    ``start`` binds the listening socket (port 0 picks a free port, see
    ``port``) and returns once uvicorn accepts connections. ``stop`` asks the
    server to exit and waits up to ``timeout`` seconds for in-flight
    requests; it does not guarantee a full drain.
    """

    def __init__(self, settings: StorageSettings | None = None, *, log_level: str = "warning") -> None:
        self.settings = settings or StorageSettings.from_env()
        self.app = create_app(self.settings)
        self.port = self.settings.port
        self._log_level = log_level
        self._server: uvicorn.Server | None = None
        self._thread: threading.Thread | None = None
        self._socket: socket.socket | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def url(self) -> str:
        return self.app.state.public_url

    def start(self, timeout: float = 5.0) -> None:
        if self.running:
            return
        config = uvicorn.Config(
            self.app,
            host=self.settings.host,
            port=self.settings.port,
            log_level=self._log_level,
            lifespan="off",
        )
        self._socket = config.bind_socket()
        self.port = self._socket.getsockname()[1]
        if not self.settings.public_url:
            self.app.state.public_url = f"http://{self.settings.public_host}:{self.port}"

        self._server = uvicorn.Server(config)
        self._thread = threading.Thread(
            target=self._server.run,
            kwargs={"sockets": [self._socket]},
            name="StorageServerListener",
            daemon=True,
        )
        self._thread.start()

        deadline = time.monotonic() + timeout
        while not self._server.started:
            if not self._thread.is_alive():
                self.stop()
                raise RuntimeError("Failed to start storage server")
            if time.monotonic() > deadline:
                self.stop()
                raise RuntimeError(f"Storage server did not start within {timeout} seconds")
            time.sleep(0.02)
        logger.info("Storage server started on port %d (storage directory: %s)", self.port, self.settings.storage_path)

    def stop(self, timeout: float = 2.0) -> None:
        if self._server is None:
            return
        self._server.should_exit = True
        if self._thread is not None:
            self._thread.join(timeout)
        if self._socket is not None:
            self._socket.close()
        self._server = None
        self._thread = None
        self._socket = None
        logger.info("Storage server stopped")

    def __enter__(self) -> "StorageServer":
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()


def run() -> None:
    """Run the storage sidecar in the foreground.

    Reads STORAGE_PATH, LISTEN_HOST, LISTEN_PORT, PUBLIC_HOST, PUBLIC_URL and
    MAX_UPLOAD_MB from the environment. Ctrl+C / SIGTERM are handled by uvicorn.
    """
    configure_logging()
    settings = StorageSettings.from_env()
    logger.info("Storage path: %s", settings.storage_path)
    logger.info("Listen port: %d", settings.port)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
