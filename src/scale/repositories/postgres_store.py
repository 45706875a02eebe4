"""
PostgreSQL Document Store

Implements the DocumentStore protocol on a single JSONB table using psycopg2.
Subscriptions fan out in-process after each write; cross-process push is the
hosted store's concern and is not provided here.

Schema:
    CREATE TABLE IF NOT EXISTS scale_documents (
        collection TEXT NOT NULL,
        id TEXT NOT NULL,
        data JSONB NOT NULL,
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        PRIMARY KEY (collection, id)
    );
"""

import logging
from contextlib import contextmanager
from typing import Optional, List, Dict, Any

import psycopg2
from psycopg2.extras import Json, RealDictCursor

from src.scale.repositories.memory_store import SubscriptionHub

logger = logging.getLogger(__name__)

CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS scale_documents (
    collection TEXT NOT NULL,
    id TEXT NOT NULL,
    data JSONB NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    PRIMARY KEY (collection, id)
)
"""


class PostgresDocumentStore(SubscriptionHub):
    """JSONB-backed document store."""

    def __init__(self, database_url: str, create_schema: bool = True):
        """
        Initialize the store.

        Args:
            database_url: PostgreSQL connection string
            create_schema: Create the documents table if missing
        """
        super().__init__()
        if not database_url:
            raise ValueError("Database URL required. Set SCALE_DATABASE_URL or pass database_url.")
        self.database_url = database_url
        self.connection: Optional[psycopg2.extensions.connection] = None
        if create_schema:
            with self._cursor() as cur:
                cur.execute(CREATE_TABLE_SQL)
            self.connection.commit()

    def connect(self) -> None:
        try:
            self.connection = psycopg2.connect(self.database_url)
            logger.info("Connected to Scale document database")
        except Exception as e:
            logger.error(f"Failed to connect to database: {e}")
            raise

    def close(self) -> None:
        if self.connection:
            self.connection.close()
            self.connection = None
            logger.info("Closed Scale document database connection")

    def is_connected(self) -> bool:
        if not self.connection:
            return False
        try:
            with self.connection.cursor() as cur:
                cur.execute("SELECT 1")
            return True
        except Exception:
            return False

    def ensure_connected(self) -> None:
        if not self.is_connected():
            self.connect()

    @contextmanager
    def _cursor(self):
        self.ensure_connected()
        cursor = self.connection.cursor(cursor_factory=RealDictCursor)
        try:
            yield cursor
        except Exception:
            self.connection.rollback()
            raise
        finally:
            cursor.close()

    def create(self, collection: str, doc_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        stored = dict(data, id=doc_id)
        with self._cursor() as cur:
            cur.execute(
                """
                INSERT INTO scale_documents (collection, id, data)
                VALUES (%s, %s, %s)
                ON CONFLICT (collection, id)
                DO UPDATE SET data = EXCLUDED.data, updated_at = now()
                """,
                (collection, doc_id, Json(stored))
            )
        self.connection.commit()
        self._notify(collection)
        return stored

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        with self._cursor() as cur:
            cur.execute(
                "SELECT data FROM scale_documents WHERE collection = %s AND id = %s",
                (collection, doc_id)
            )
            row = cur.fetchone()
            return dict(row["data"]) if row else None

    def list(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        # JSONB containment matches scalar equality and array membership alike
        containment = dict(filters or {})
        with self._cursor() as cur:
            cur.execute(
                """
                SELECT data FROM scale_documents
                WHERE collection = %s AND data @> %s
                ORDER BY updated_at
                """,
                (collection, Json(containment))
            )
            return [dict(row["data"]) for row in cur.fetchall()]

    def update(self, collection: str, doc_id: str, updates: Dict[str, Any]) -> None:
        with self._cursor() as cur:
            cur.execute(
                """
                UPDATE scale_documents
                SET data = data || %s, updated_at = now()
                WHERE collection = %s AND id = %s
                """,
                (Json(updates), collection, doc_id)
            )
            if cur.rowcount == 0:
                raise KeyError(f"{collection}/{doc_id}")
        self.connection.commit()
        self._notify(collection)

    def delete(self, collection: str, doc_id: str) -> None:
        with self._cursor() as cur:
            cur.execute(
                "DELETE FROM scale_documents WHERE collection = %s AND id = %s",
                (collection, doc_id)
            )
            deleted = cur.rowcount
        self.connection.commit()
        if deleted:
            self._notify(collection)
