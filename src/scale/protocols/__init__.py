"""
Protocol definitions for the external collaborators.

The document store, blob store and identity provider are external services;
these protocols are the only surface the core depends on, so tests can pass
in-memory fakes and deployments can swap backends.
"""

from src.scale.protocols.store_protocol import DocumentStore, SnapshotCallback, Unsubscribe
from src.scale.protocols.blob_protocol import BlobStore
from src.scale.protocols.identity_protocol import IdentityProvider

__all__ = [
    "DocumentStore",
    "SnapshotCallback",
    "Unsubscribe",
    "BlobStore",
    "IdentityProvider",
]
