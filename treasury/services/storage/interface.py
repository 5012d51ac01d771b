"""
Abstract Blob Store Interface

DESIGN DECISION: The ledger persists through a plain key/value blob store.
This allows us to:
1. Keep the persistence adapter independent of where blobs live
2. Use in-memory storage for testing
3. Enforce a byte quota the same way in every backend

Only single-key atomicity is promised. There are no transactions across
keys: a save writes each key independently.
"""

from abc import ABC, abstractmethod
from typing import Optional


class BlobStoreInterface(ABC):
    """
    Abstract interface for the key/value blob store.

    Values are UTF-8 text (JSON documents or a data URI).
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        Read a blob.

        Args:
            key: Logical key (e.g. "transactions")

        Returns:
            The stored text, or None if the key is absent

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """
        Write a blob, replacing any previous value atomically.

        Raises:
            QuotaExceededError: If the write would exceed the byte quota
            StorageError: If the write fails for another reason
        """
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete a blob. Removing an absent key is not an error."""
        pass

    @abstractmethod
    def keys(self) -> list[str]:
        """List stored keys."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class QuotaExceededError(StorageError):
    """A write would exceed the store's byte quota."""
    pass


class ConnectionError(StorageError):
    """Could not reach the storage backend."""
    pass
