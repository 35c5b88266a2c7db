"""Blob storage abstraction for receipt images."""

import uuid
from abc import ABC, abstractmethod

from app.core.utils import utcnow


class BlobStore(ABC):
    """A store that keeps bytes under a path and hands back a retrievable URL."""

    @abstractmethod
    def put(self, path: str, data: bytes, content_type: str) -> str:
        """Store ``data`` under ``path`` and return its public URL.

        Raises StorageError when the store is unreachable or rejects the blob.
        """


def receipt_key(company_id: str, extension: str) -> str:
    """Build a collision-resistant object key from the company id and the current time."""
    millis = int(utcnow().timestamp() * 1000)
    return f"receipts/{company_id}-{millis}-{uuid.uuid4().hex[:8]}.{extension}"
