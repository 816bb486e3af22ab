"""In-process document store used for local runs and tests."""

import copy
import logging
import threading
from collections import defaultdict
from contextlib import contextmanager
from typing import Any, Dict, FrozenSet, Iterable, Iterator, List, Optional, Tuple

from catalog_sync.core.errors import ConflictError, NotFoundError
from catalog_sync.core.store import Document, DocumentStore, Transaction, matches

logger = logging.getLogger(__name__)

_Key = Tuple[str, str]


def _matching_ids(documents: Iterable[Document], where: Optional[Dict[str, Any]]) -> FrozenSet[str]:
    return frozenset(document["id"] for document in documents if matches(document, where))


class MemoryTransaction(Transaction):
    """Buffers writes and validates read versions at commit (optimistic locking).

    Queries are re-run at commit as well, so a concurrent insert into a result set conflicts.
    """

    def __init__(self, store: "MemoryStore") -> None:
        self._store = store
        self._writes: List[Tuple[str, _Key, Optional[Document]]] = []
        self._overlay: Dict[_Key, Optional[Document]] = {}
        self._read_versions: Dict[_Key, int] = {}
        self._query_results: List[Tuple[str, Optional[Dict[str, Any]], FrozenSet[str]]] = []

    def _current(self, key: _Key) -> Optional[Document]:
        if key in self._overlay:
            return self._overlay[key]
        self._read_versions.setdefault(key, self._store._version(key))
        return self._store._raw(key)

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        return copy.deepcopy(self._current((collection, doc_id)))

    def query(self, collection: str, where: Optional[Dict[str, Any]] = None) -> List[Document]:
        results: Dict[str, Document] = {}
        with self._store._lock:
            snapshot = self._store._scan(collection)
            for document in snapshot:
                key = (collection, document["id"])
                if matches(document, where):
                    self._read_versions.setdefault(key, self._store._version(key))
                results[document["id"]] = document
        self._query_results.append((collection, copy.deepcopy(where), _matching_ids(snapshot, where)))
        for (coll, doc_id), document in self._overlay.items():
            if coll != collection:
                continue
            if document is None:
                results.pop(doc_id, None)
            else:
                results[doc_id] = document
        return [copy.deepcopy(doc) for _, doc in sorted(results.items()) if matches(doc, where)]

    def set(self, collection: str, doc_id: str, data: Document) -> None:
        document = {**copy.deepcopy(data), "id": doc_id}
        key = (collection, doc_id)
        self._overlay[key] = document
        self._writes.append(("set", key, document))

    def update(self, collection: str, doc_id: str, fields: Document) -> None:
        key = (collection, doc_id)
        existing = self._current(key)
        if existing is None:
            raise NotFoundError(f"{collection}/{doc_id} does not exist")
        document = {**copy.deepcopy(existing), **copy.deepcopy(fields), "id": doc_id}
        self._overlay[key] = document
        self._writes.append(("set", key, document))

    def delete(self, collection: str, doc_id: str) -> None:
        key = (collection, doc_id)
        self._overlay[key] = None
        self._writes.append(("delete", key, None))

    def commit(self) -> None:
        with self._store._lock:
            for key, version in self._read_versions.items():
                if self._store._version(key) != version:
                    raise ConflictError(f"{key[0]}/{key[1]} changed during transaction")
            for collection, where, seen in self._query_results:
                if _matching_ids(self._store._scan(collection), where) != seen:
                    raise ConflictError(f"{collection} matching {where} changed during transaction")
            for op, key, document in self._writes:
                if op == "set":
                    self._store._put(key, document)
                else:
                    self._store._remove(key)


class MemoryStore(DocumentStore):
    """Thread-safe dictionary-backed store."""

    def __init__(self) -> None:
        self._collections: Dict[str, Dict[str, Document]] = defaultdict(dict)
        self._versions: Dict[_Key, int] = defaultdict(int)
        self._lock = threading.RLock()

    def _raw(self, key: _Key) -> Optional[Document]:
        with self._lock:
            return self._collections[key[0]].get(key[1])

    def _version(self, key: _Key) -> int:
        with self._lock:
            return self._versions[key]

    def _scan(self, collection: str) -> List[Document]:
        with self._lock:
            return list(self._collections[collection].values())

    def _put(self, key: _Key, document: Document) -> None:
        self._collections[key[0]][key[1]] = document
        self._versions[key] += 1

    def _remove(self, key: _Key) -> None:
        if self._collections[key[0]].pop(key[1], None) is not None:
            self._versions[key] += 1

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        return copy.deepcopy(self._raw((collection, doc_id)))

    def query(self, collection: str, where: Optional[Dict[str, Any]] = None) -> List[Document]:
        documents = sorted(self._scan(collection), key=lambda doc: doc["id"])
        return [copy.deepcopy(doc) for doc in documents if matches(doc, where)]

    @contextmanager
    def transaction(self) -> Iterator[MemoryTransaction]:
        tx = MemoryTransaction(self)
        yield tx
        tx.commit()
        logger.debug("Committed memory transaction with %d writes", len(tx._writes))
