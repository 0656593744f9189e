"""
Storage side of the relay: a flat file store with strict path containment
and a byte-level multipart decoder for uploads.
"""

from .errors import MalformedUpload, PayloadTooLarge, StorageError, StoredFileNotFound, UnsafeFilename, UnsupportedMediaType
from .files import FileStore, PendingFile, StoredFile, guess_mime_type, iter_file, sanitize_filename
from .multipart import UploadParser, parse_boundary
