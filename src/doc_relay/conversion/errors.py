ENGINE_ERROR_MESSAGES: dict[int, str] = {
    -1: "unknown error",
    -2: "conversion timeout",
    -3: "conversion error",
    -4: "error while downloading the source document",
    -5: "incorrect password",
    -6: "error while accessing the conversion result database",
    -7: "input error",
    -8: "invalid token",
}


class ConversionError(Exception):
    """Base class for every failure of the conversion chain."""

    code = "conversion_error"


class SourceNotFound(ConversionError):
    code = "source_not_found"


class UploadFailed(ConversionError):
    code = "upload_failed"


class ConversionRequestFailed(ConversionError):
    code = "conversion_request_failed"

    def __init__(self, message: str, *, status_code: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ConversionEngineError(ConversionError):
    code = "conversion_engine_error"

    def __init__(self, error_code: int) -> None:
        description = ENGINE_ERROR_MESSAGES.get(error_code)
        message = f"Conversion failed with error code: {error_code}"
        if description:
            message = f"{message} ({description})"
        super().__init__(message)
        self.error_code = error_code


class ConversionIncomplete(ConversionError):
    code = "conversion_incomplete"

    def __init__(self, percent: int = 0) -> None:
        super().__init__(f"Conversion failed: No output URL returned (progress {percent}%)")
        self.percent = percent


class ResultDownloadFailed(ConversionError):
    code = "result_download_failed"


class OperationCancelled(ConversionError):
    code = "operation_cancelled"


def snippet(text: str, limit: int = 500) -> str:
    text = text.strip()
    if len(text) <= limit:
        return text
    return text[:limit] + "..."
