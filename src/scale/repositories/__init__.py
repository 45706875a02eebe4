"""
Repository Layer for Scale

Provides typed data access over the external document store.
"""

from src.scale.repositories.scale_repository import ScaleRepository
from src.scale.repositories.memory_store import InMemoryDocumentStore
from src.scale.repositories.blob_store import LocalBlobStore

__all__ = ["ScaleRepository", "InMemoryDocumentStore", "LocalBlobStore"]
