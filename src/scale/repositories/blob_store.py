"""
Local Blob Store

Development stand-in for the hosted object storage: writes uploads under a
directory and returns a URL relative to ``base_url``.
"""

import logging
import uuid
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class LocalBlobStore:
    """BlobStore implementation on the local filesystem."""

    def __init__(self, root_dir: str = "data/uploads", base_url: Optional[str] = None):
        self.root_dir = Path(root_dir)
        self.base_url = (base_url or self.root_dir.as_posix()).rstrip("/")

    def upload(self, data: bytes, filename: str, content_type: str = "application/octet-stream") -> str:
        suffix = Path(filename).suffix.lower() or ".bin"
        stored_name = f"{uuid.uuid4().hex}{suffix}"
        self.root_dir.mkdir(parents=True, exist_ok=True)
        (self.root_dir / stored_name).write_bytes(data)
        logger.info(f"Stored upload {filename} ({len(data)} bytes, {content_type}) as {stored_name}")
        return f"{self.base_url}/{stored_name}"
