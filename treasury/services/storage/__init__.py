"""
Storage Services Package

Provides the abstract blob store interface and its local implementations.
The persistence adapter only depends on the interface, so the backend is
swappable.
"""

from treasury.services.storage.interface import (
    BlobStoreInterface,
    ConnectionError,
    QuotaExceededError,
    StorageError,
)
from treasury.services.storage.local_store import (
    FileBlobStore,
    InMemoryBlobStore,
)

__all__ = [
    # Interface
    "BlobStoreInterface",
    # Exceptions
    "ConnectionError",
    "QuotaExceededError",
    "StorageError",
    # Implementations
    "FileBlobStore",
    "InMemoryBlobStore",
]
