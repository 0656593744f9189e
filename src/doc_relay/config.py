import logging
import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_STORAGE_PATH = "/var/lib/doc-relay-storage"
DEFAULT_LISTEN_PORT = 8000
DEFAULT_ENGINE_URL = "http://localhost:8080"
DEFAULT_STORAGE_URL = "http://localhost:8000"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

logger = logging.getLogger(__name__)


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r, using %d", name, raw, default)
        return default


@dataclass(frozen=True)
class StorageSettings:
    """Runtime settings of the storage sidecar."""

    storage_path: Path = Path(DEFAULT_STORAGE_PATH)
    host: str = "0.0.0.0"
    port: int = DEFAULT_LISTEN_PORT
    public_host: str = "localhost"
    public_url: str | None = None
    max_upload_mb: int = 300

    @property
    def base_url(self) -> str:
        if self.public_url:
            return self.public_url.rstrip("/")
        return f"http://{self.public_host}:{self.port}"

    @classmethod
    def from_env(cls) -> "StorageSettings":
        return cls(
            storage_path=Path(os.getenv("STORAGE_PATH", DEFAULT_STORAGE_PATH)),
            host=os.getenv("LISTEN_HOST", "0.0.0.0"),
            port=_int_env("LISTEN_PORT", DEFAULT_LISTEN_PORT),
            public_host=os.getenv("PUBLIC_HOST", "localhost"),
            public_url=os.getenv("PUBLIC_URL") or None,
            max_upload_mb=_int_env("MAX_UPLOAD_MB", 300),
        )


@dataclass(frozen=True)
class ConverterSettings:
    """Settings of the conversion client: engine, signing secret and sidecar."""

    engine_url: str = DEFAULT_ENGINE_URL
    jwt_secret: str = ""
    storage_url: str = DEFAULT_STORAGE_URL
    timeout_s: int = 120

    @classmethod
    def from_env(cls) -> "ConverterSettings":
        return cls(
            engine_url=os.getenv("DOC_RELAY_ENGINE_URL", DEFAULT_ENGINE_URL),
            jwt_secret=os.getenv("DOC_RELAY_JWT_SECRET", ""),
            storage_url=os.getenv("DOC_RELAY_STORAGE_URL", DEFAULT_STORAGE_URL),
            timeout_s=_int_env("DOC_RELAY_TIMEOUT_S", 120),
        )


def configure_logging(level: str | None = None) -> None:
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(level=getattr(logging, level_name, logging.INFO), format=LOG_FORMAT)
