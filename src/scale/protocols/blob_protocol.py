"""
Blob Storage Protocol

Defines the interface for image uploads.
"""

from typing import Protocol


class BlobStore(Protocol):
    """Protocol for object/member image storage."""

    def upload(self, data: bytes, filename: str, content_type: str = "application/octet-stream") -> str:
        """
        Upload a file.

        Args:
            data: File contents
            filename: Original filename (used for the extension)
            content_type: MIME type

        Returns:
            Public URL of the stored file
        """
        ...
