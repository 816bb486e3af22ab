"""Document store interface used by the reconciliation services.

The services only rely on four capabilities: get-by-id, equality queries over a
collection, single-document writes, and a transaction that commits all of its
writes or none of them. Backends live in ``catalog_sync.core.db`` (PostgreSQL)
and ``catalog_sync.core.memory_store`` (in-process).
"""

import logging
import uuid
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from catalog_sync.core.config import get_settings

logger = logging.getLogger(__name__)

VENUES = "venues"
DISHES = "dishes"
DISCOVERED_VENUES = "discovered_venues"
DISCOVERED_DISHES = "discovered_dishes"
SYNC_HISTORY = "sync_history"
CHANGE_LOGS = "change_logs"

Document = Dict[str, Any]

_store: Optional["DocumentStore"] = None


def new_id() -> str:
    return uuid.uuid4().hex


def nest_filters(where: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Turn ``{"source.type": "x"}`` into ``{"source": {"type": "x"}}``."""
    nested: Dict[str, Any] = {}
    for key, value in (where or {}).items():
        target = nested
        parts = key.split(".")
        for part in parts[:-1]:
            target = target.setdefault(part, {})
        target[parts[-1]] = value
    return nested


def matches(document: Document, where: Optional[Dict[str, Any]]) -> bool:
    for key, expected in (where or {}).items():
        value: Any = document
        for part in key.split("."):
            if not isinstance(value, dict):
                value = None
                break
            value = value.get(part)
        if value != expected:
            return False
    return True


class Transaction:
    """Reads and buffered writes that commit together."""

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        raise NotImplementedError

    def query(self, collection: str, where: Optional[Dict[str, Any]] = None) -> List[Document]:
        raise NotImplementedError

    def set(self, collection: str, doc_id: str, data: Document) -> None:
        raise NotImplementedError

    def update(self, collection: str, doc_id: str, fields: Document) -> None:
        raise NotImplementedError

    def delete(self, collection: str, doc_id: str) -> None:
        raise NotImplementedError


class DocumentStore:
    """Base class for catalog backends."""

    def new_id(self) -> str:
        return new_id()

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        raise NotImplementedError

    def query(self, collection: str, where: Optional[Dict[str, Any]] = None) -> List[Document]:
        raise NotImplementedError

    def create(self, collection: str, data: Document, doc_id: Optional[str] = None) -> str:
        doc_id = doc_id or self.new_id()
        with self.transaction() as tx:
            tx.set(collection, doc_id, data)
        return doc_id

    def update(self, collection: str, doc_id: str, fields: Document) -> None:
        with self.transaction() as tx:
            tx.update(collection, doc_id, fields)

    def delete(self, collection: str, doc_id: str) -> None:
        with self.transaction() as tx:
            tx.delete(collection, doc_id)

    @contextmanager
    def transaction(self) -> Iterator[Transaction]:
        raise NotImplementedError
        yield  # pragma: no cover


def get_store() -> DocumentStore:
    """Return the process-wide store for the configured backend."""
    global _store
    if _store is None:
        settings = get_settings()
        if settings.catalog_backend == "memory":
            from catalog_sync.core.memory_store import MemoryStore

            _store = MemoryStore()
        else:
            from catalog_sync.core.db import PostgresStore

            _store = PostgresStore()
        logger.info("Catalog store initialised (backend=%s)", settings.catalog_backend)
    return _store


def set_store(store: Optional[DocumentStore]) -> None:
    global _store
    _store = store
