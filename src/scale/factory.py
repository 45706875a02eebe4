"""
Factory Functions for Scale

Provides factory functions to create a fully-wired application container
with the repository and all services.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from src.scale.protocols.blob_protocol import BlobStore
from src.scale.protocols.store_protocol import DocumentStore
from src.scale.repositories.blob_store import LocalBlobStore
from src.scale.repositories.memory_store import InMemoryDocumentStore
from src.scale.repositories.scale_repository import ScaleRepository
from src.scale.services.claim_service import ClaimService
from src.scale.services.group_service import GroupService
from src.scale.services.integrity_service import IntegrityService
from src.scale.services.live_scores import LiveScoreboard
from src.scale.services.membership_service import MembershipService
from src.scale.services.object_service import ObjectService
from src.scale.services.rating_service import RatingService
from src.utils.config import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass
class ScaleApp:
    """Repository plus the services built on it."""
    settings: Settings
    store: DocumentStore
    repository: ScaleRepository
    groups: GroupService
    objects: ObjectService
    ratings: RatingService
    members: MembershipService
    claims: ClaimService
    integrity: IntegrityService

    def scoreboard(self, group_id: str) -> LiveScoreboard:
        """Create a live scoreboard for a group (call ``start()`` or use as a context manager)."""
        return LiveScoreboard(self.repository, group_id)


def create_document_store(settings: Settings) -> DocumentStore:
    """PostgreSQL store when configured, else an in-memory store."""
    if settings.has_database:
        from src.scale.repositories.postgres_store import PostgresDocumentStore

        store = PostgresDocumentStore(settings.scale_database_url)
        logger.info("Created PostgresDocumentStore")
        return store

    logger.warning("No database URL provided, running with in-memory storage")
    return InMemoryDocumentStore()


def create_scale_app(
    settings: Optional[Settings] = None,
    store: Optional[DocumentStore] = None,
    blob_store: Optional[BlobStore] = None,
) -> ScaleApp:
    """
    Create a fully-wired ScaleApp with all dependencies.

    Args:
        settings: Settings (defaults to get_settings())
        store: Document store (defaults to PostgreSQL or in-memory per settings)
        blob_store: Blob store for images (defaults to the local upload directory)

    Returns:
        Configured ScaleApp
    """
    settings = settings or get_settings()
    store = store if store is not None else create_document_store(settings)
    blob_store = blob_store or LocalBlobStore(settings.blob_dir, settings.blob_base_url)

    repository = ScaleRepository(store)
    return ScaleApp(
        settings=settings,
        store=store,
        repository=repository,
        groups=GroupService(
            repository,
            max_metrics=settings.max_metrics_per_group,
            max_metric_value=settings.max_metric_value,
        ),
        objects=ObjectService(repository, blob_store=blob_store),
        ratings=RatingService(repository),
        members=MembershipService(repository),
        claims=ClaimService(repository),
        integrity=IntegrityService(repository),
    )
