"""
Client side of the relay.
Provides gateways to the storage sidecar and the conversion engine, the
token signer, and a service that runs a document through upload,
conversion and download.
"""

from .adapters import DocumentServerEngine, SidecarStorage
from .errors import (
    ConversionEngineError,
    ConversionError,
    ConversionIncomplete,
    ConversionRequestFailed,
    OperationCancelled,
    ResultDownloadFailed,
    SourceNotFound,
    UploadFailed,
)
from .interfaces import ConversionResult, EngineGateway, JobDescriptor, StorageGateway
from .service import ConversionService, default_output_format, source_format
from .signing import TOKEN_FIELDS, sign_fields
