from dataclasses import dataclass
from typing import Mapping, Protocol

from .signing import TOKEN_FIELDS


@dataclass(frozen=True)
class JobDescriptor:
    """One conversion request as sent to the engine's ``/converter`` endpoint."""

    filetype: str
    key: str
    outputtype: str
    title: str
    url: str
    token: str | None = None
    async_: bool = False

    def signing_fields(self) -> dict[str, str]:
        return {name: getattr(self, name) for name in TOKEN_FIELDS}

    def to_request(self) -> dict[str, object]:
        body: dict[str, object] = {"async": self.async_, **self.signing_fields()}
        if self.token is not None:
            body["token"] = self.token
        return body


@dataclass(frozen=True)
class ConversionResult:
    end_convert: bool = False
    file_url: str | None = None
    percent: int = 0
    error: int | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None and self.error != 0

    @property
    def succeeded(self) -> bool:
        return not self.failed and bool(self.file_url)

    @classmethod
    def from_json(cls, payload: Mapping[str, object]) -> "ConversionResult":
        error = payload.get("error")
        percent = payload.get("percent")
        file_url = payload.get("fileUrl")
        return cls(
            end_convert=bool(payload.get("endConvert", False)),
            file_url=str(file_url) if file_url else None,
            percent=int(percent) if isinstance(percent, (int, float)) else 0,
            error=int(error) if isinstance(error, (int, float)) else None,
        )


class StorageGateway(Protocol):
    def upload(self, data: bytes, filename: str) -> str:
        """Store ``data`` somewhere the engine can fetch it and return that URL."""


class EngineGateway(Protocol):
    def submit(self, descriptor: JobDescriptor) -> ConversionResult:
        ...

    def download(self, url: str) -> bytes:
        ...
