"""PostgreSQL-backed document store for the catalog."""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from psycopg2 import extras, pool

from catalog_sync.core.config import get_settings
from catalog_sync.core.errors import NotFoundError
from catalog_sync.core.store import Document, DocumentStore, Transaction, nest_filters

logger = logging.getLogger(__name__)

_connection_pool: Optional[pool.SimpleConnectionPool] = None


def init_pool(minconn: int = 1, maxconn: int = 5) -> pool.SimpleConnectionPool:
    """Initialise and return the shared connection pool."""
    global _connection_pool
    if _connection_pool is None:
        settings = get_settings()
        if not settings.database_url:
            raise RuntimeError("DATABASE_URL is required for database connections")
        _connection_pool = pool.SimpleConnectionPool(
            minconn,
            maxconn,
            dsn=settings.database_url,
            connect_timeout=10,
        )
        logger.info("Database connection pool initialised")
    return _connection_pool


@contextmanager
def get_connection():
    """Context manager yielding a pooled connection."""
    pg_pool = init_pool()
    conn = pg_pool.getconn()
    try:
        yield conn
    finally:
        pg_pool.putconn(conn)


_CREATE_SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    collection TEXT NOT NULL,
    id TEXT NOT NULL,
    data JSONB NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    PRIMARY KEY (collection, id)
);
CREATE INDEX IF NOT EXISTS documents_data_gin ON documents USING GIN (data jsonb_path_ops);
"""

_SELECT_ONE = """
SELECT data FROM documents
WHERE collection = %(collection)s AND id = %(id)s
"""

_SELECT_MANY = """
SELECT data FROM documents
WHERE collection = %(collection)s AND data @> %(where)s
ORDER BY id
"""

_UPSERT = """
INSERT INTO documents (collection, id, data, updated_at)
VALUES (%(collection)s, %(id)s, %(data)s, NOW())
ON CONFLICT (collection, id) DO UPDATE SET
    data = EXCLUDED.data,
    updated_at = NOW();
"""

_UPDATE = """
UPDATE documents
SET data = data || %(fields)s, updated_at = NOW()
WHERE collection = %(collection)s AND id = %(id)s
"""

_DELETE = """
DELETE FROM documents
WHERE collection = %(collection)s AND id = %(id)s
"""


def ensure_schema() -> None:
    """Create the documents table and its containment index if missing."""
    with get_connection() as conn:
        with conn.cursor() as cur:
            cur.execute(_CREATE_SCHEMA)
        conn.commit()
    logger.info("Document schema ensured")


class PostgresTransaction(Transaction):
    """Runs every statement on one cursor; reads lock their rows until commit."""

    def __init__(self, cursor) -> None:
        self._cursor = cursor

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        self._cursor.execute(_SELECT_ONE + " FOR UPDATE", {"collection": collection, "id": doc_id})
        row = self._cursor.fetchone()
        return row[0] if row else None

    def query(self, collection: str, where: Optional[Dict[str, Any]] = None) -> List[Document]:
        params = {"collection": collection, "where": extras.Json(nest_filters(where))}
        self._cursor.execute(_SELECT_MANY, params)
        return [row[0] for row in self._cursor.fetchall()]

    def set(self, collection: str, doc_id: str, data: Document) -> None:
        document = {**data, "id": doc_id}
        self._cursor.execute(_UPSERT, {"collection": collection, "id": doc_id, "data": extras.Json(document)})

    def update(self, collection: str, doc_id: str, fields: Document) -> None:
        params = {"collection": collection, "id": doc_id, "fields": extras.Json(fields)}
        self._cursor.execute(_UPDATE, params)
        if self._cursor.rowcount == 0:
            raise NotFoundError(f"{collection}/{doc_id} does not exist")

    def delete(self, collection: str, doc_id: str) -> None:
        self._cursor.execute(_DELETE, {"collection": collection, "id": doc_id})


class PostgresStore(DocumentStore):
    """Stores every collection in a single JSONB table."""

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(_SELECT_ONE, {"collection": collection, "id": doc_id})
                row = cur.fetchone()
            conn.commit()
        return row[0] if row else None

    def query(self, collection: str, where: Optional[Dict[str, Any]] = None) -> List[Document]:
        params = {"collection": collection, "where": extras.Json(nest_filters(where))}
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(_SELECT_MANY, params)
                rows = cur.fetchall()
            conn.commit()
        return [row[0] for row in rows]

    @contextmanager
    def transaction(self) -> Iterator[PostgresTransaction]:
        with get_connection() as conn:
            try:
                with conn.cursor() as cur:
                    yield PostgresTransaction(cur)
                conn.commit()
            except Exception:
                conn.rollback()
                raise
            logger.debug("Committed postgres transaction")
