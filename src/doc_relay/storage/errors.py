class StorageError(Exception):
    """Failure of a sidecar request, mapped to a JSON error response."""

    status_code = 500


class MalformedUpload(StorageError):
    status_code = 400


class UnsupportedMediaType(StorageError):
    status_code = 415


class PayloadTooLarge(StorageError):
    status_code = 413


class UnsafeFilename(StorageError):
    status_code = 403


class StoredFileNotFound(StorageError):
    status_code = 404
