"""Services package."""

from treasury.services.codec import (
    CodecError,
    ImportFormat,
    ImportParseError,
    UnrecognizedFormatError,
)
from treasury.services.persistence import (
    LoadReport,
    SaveReport,
    load_state,
    save_state,
)
from treasury.services.storage import (
    BlobStoreInterface,
    ConnectionError,
    FileBlobStore,
    InMemoryBlobStore,
    QuotaExceededError,
    StorageError,
)

__all__ = [
    # File import/export
    "CodecError",
    "ImportFormat",
    "ImportParseError",
    "UnrecognizedFormatError",
    # Persistence
    "LoadReport",
    "SaveReport",
    "load_state",
    "save_state",
    # Storage services
    "BlobStoreInterface",
    "ConnectionError",
    "FileBlobStore",
    "InMemoryBlobStore",
    "QuotaExceededError",
    "StorageError",
]
