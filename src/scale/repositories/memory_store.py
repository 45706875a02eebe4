"""
In-Memory Document Store

Implements the DocumentStore protocol with plain dicts. Used by the test
suite, the demo page and any deployment running without a database.
"""

import copy
import logging
import threading
from typing import Optional, List, Dict, Any, Tuple

from src.scale.protocols.store_protocol import SnapshotCallback, Unsubscribe

logger = logging.getLogger(__name__)


def matches_filters(doc: Dict[str, Any], filters: Optional[Dict[str, Any]]) -> bool:
    """Field equality match; a list-valued field matches if it contains the value."""
    if not filters:
        return True
    for key, expected in filters.items():
        actual = doc.get(key)
        if isinstance(actual, list) and not isinstance(expected, list):
            if expected not in actual:
                return False
        elif actual != expected:
            return False
    return True


class SubscriptionHub:
    """
    Fan-out of collection snapshots to subscribers.

    Subclasses call ``_notify(collection)`` after every write; each
    subscriber receives the full, freshly listed snapshot for its filters.
    """

    def __init__(self):
        self._subscribers: Dict[str, List[Tuple[int, Optional[Dict[str, Any]], SnapshotCallback]]] = {}
        self._next_subscription_id = 0
        self._subscription_lock = threading.Lock()

    def list(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def subscribe(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]],
        callback: SnapshotCallback,
    ) -> Unsubscribe:
        with self._subscription_lock:
            subscription_id = self._next_subscription_id
            self._next_subscription_id += 1
            self._subscribers.setdefault(collection, []).append((subscription_id, filters, callback))

        # Initial snapshot, like a live query's first emission
        callback(self.list(collection, filters))

        def unsubscribe() -> None:
            with self._subscription_lock:
                entries = self._subscribers.get(collection, [])
                self._subscribers[collection] = [e for e in entries if e[0] != subscription_id]

        return unsubscribe

    def _notify(self, collection: str) -> None:
        with self._subscription_lock:
            entries = list(self._subscribers.get(collection, []))
        for _, filters, callback in entries:
            try:
                callback(self.list(collection, filters))
            except Exception as e:
                # One broken listener must not block the write or other listeners
                logger.error(f"Subscriber callback failed for '{collection}': {e}")


class InMemoryDocumentStore(SubscriptionHub):
    """Thread-safe dict-backed document store."""

    def __init__(self, initial: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        super().__init__()
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = threading.RLock()
        for collection, docs in (initial or {}).items():
            for doc in docs:
                self._collections.setdefault(collection, {})[doc["id"]] = copy.deepcopy(doc)

    def create(self, collection: str, doc_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        stored = copy.deepcopy(data)
        stored["id"] = doc_id
        with self._lock:
            self._collections.setdefault(collection, {})[doc_id] = stored
        self._notify(collection)
        return copy.deepcopy(stored)

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            doc = self._collections.get(collection, {}).get(doc_id)
            return copy.deepcopy(doc) if doc is not None else None

    def list(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        with self._lock:
            docs = list(self._collections.get(collection, {}).values())
            return [copy.deepcopy(d) for d in docs if matches_filters(d, filters)]

    def update(self, collection: str, doc_id: str, updates: Dict[str, Any]) -> None:
        with self._lock:
            doc = self._collections.get(collection, {}).get(doc_id)
            if doc is None:
                raise KeyError(f"{collection}/{doc_id}")
            doc.update(copy.deepcopy(updates))
        self._notify(collection)

    def delete(self, collection: str, doc_id: str) -> None:
        with self._lock:
            removed = self._collections.get(collection, {}).pop(doc_id, None)
        if removed is not None:
            self._notify(collection)

    def count(self, collection: str) -> int:
        with self._lock:
            return len(self._collections.get(collection, {}))
