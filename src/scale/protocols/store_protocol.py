"""
Document Store Protocol

Defines the interface for the external document database.
"""

from typing import Protocol, Optional, List, Dict, Any, Callable

# Called with the full list of documents matching a subscription's filters
SnapshotCallback = Callable[[List[Dict[str, Any]]], None]
Unsubscribe = Callable[[], None]


class DocumentStore(Protocol):
    """Protocol for document persistence with live subscriptions."""

    def create(self, collection: str, doc_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create a document.

        Args:
            collection: Collection name (groups, objects, ratings, ...)
            doc_id: Document ID
            data: Document fields

        Returns:
            Stored document including its id
        """
        ...

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """
        Get a document by ID.

        Returns:
            Document dict, or None if not found
        """
        ...

    def list(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """
        List documents whose fields equal every value in ``filters``.

        Args:
            collection: Collection name
            filters: Field equality filters (all must match)

        Returns:
            Matching documents
        """
        ...

    def update(self, collection: str, doc_id: str, updates: Dict[str, Any]) -> None:
        """
        Merge ``updates`` into an existing document.

        Raises:
            KeyError: If the document does not exist
        """
        ...

    def delete(self, collection: str, doc_id: str) -> None:
        """Delete a document (no-op when missing)."""
        ...

    def subscribe(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]],
        callback: SnapshotCallback,
    ) -> Unsubscribe:
        """
        Push the matching documents to ``callback`` now and after every change.

        Returns:
            Function that cancels the subscription
        """
        ...
