# SPDX-License-Identifier: Apache-2.0

"""
Document store contract and in-process implementation.

The engine uses the persisted store as schemaless collections of documents
keyed by id, with field-level updates and a watch primitive that pushes the
full matching document set after every committed write. The in-process store
backs local development and the test suite; MongoDocumentStore backs
deployments.
"""

import asyncio
import copy
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from opentelemetry import trace

from ..models.base import generate_object_id

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

# Logical collection names
REPORTS = "reports"
RESOURCE_REQUESTS = "resourceRequests"
VOLUNTEER_TASKS = "volunteerTasks"
BROADCASTS = "broadcasts"

COLLECTIONS = (REPORTS, RESOURCE_REQUESTS, VOLUNTEER_TASKS, BROADCASTS)


class StoreError(Exception):
    """Base class for document store failures."""
    pass


class StoreUnavailableError(StoreError):
    """Raised when the store cannot be reached or rejects a write."""
    pass


class DocumentNotFoundError(StoreError):
    """Raised when an update targets a document that does not exist."""
    pass


class PreconditionFailedError(StoreError):
    """Raised when a conditional update finds the document changed."""
    pass


@dataclass
class StoreSnapshot:
    """Full matching document set of a watched collection at one version."""
    version: int
    documents: List[Dict[str, Any]] = field(default_factory=list)


SnapshotListener = Callable[[StoreSnapshot], None]
ErrorListener = Callable[[StoreError], None]
Unsubscribe = Callable[[], None]


def matches_filters(document: Dict[str, Any], filters: Optional[Dict[str, Any]]) -> bool:
    """Equality match of every filter field."""
    if not filters:
        return True
    return all(document.get(key) == value for key, value in filters.items())


class DocumentStore(ABC):
    """Contract of the persisted store collaborator."""

    @abstractmethod
    async def add(self, collection: str, fields: Dict[str, Any]) -> str:
        """Insert a document and return its store-assigned id."""

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Fetch a document by id, with the id under ``id``."""

    @abstractmethod
    async def update(
        self,
        collection: str,
        doc_id: str,
        fields: Dict[str, Any],
        expected: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Apply a field-level update as one write.

        When ``expected`` is given the update only applies if the stored
        document still holds those values.

        Raises:
            DocumentNotFoundError: No document with that id
            PreconditionFailedError: ``expected`` no longer holds
        """

    @abstractmethod
    def watch(
        self,
        collection: str,
        listener: SnapshotListener,
        filters: Optional[Dict[str, Any]] = None,
        on_error: Optional[ErrorListener] = None
    ) -> Unsubscribe:
        """
        Push the matching document set to ``listener`` now and after every
        committed write, with increasing versions. A watch that breaks reports
        once through ``on_error`` and stops. Returns a synchronous unsubscribe
        callable.
        """

    async def close(self) -> None:
        """Release store resources."""


@dataclass(eq=False)
class _Watcher:
    collection: str
    listener: SnapshotListener
    filters: Optional[Dict[str, Any]]
    on_error: Optional[ErrorListener] = None
    active: bool = True


class InMemoryDocumentStore(DocumentStore):
    """
    In-process document store for local development and tests.

    Writes are serialized with an asyncio lock and listeners are notified
    synchronously after each commit, before the write call returns.
    """

    def __init__(self):
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._watchers: List[_Watcher] = []
        self._version = 0
        self._lock = asyncio.Lock()
        self.available = True
        logger.info("In-memory document store initialized")

    def _ensure_available(self) -> None:
        if not self.available:
            raise StoreUnavailableError("Document store is unavailable")

    def _collection(self, name: str) -> Dict[str, Dict[str, Any]]:
        return self._collections.setdefault(name, {})

    def _matching(self, collection: str, filters: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [
            copy.deepcopy(document)
            for document in self._collection(collection).values()
            if matches_filters(document, filters)
        ]

    def _notify(self, collection: str) -> None:
        for watcher in list(self._watchers):
            if watcher.active and watcher.collection == collection:
                snapshot = StoreSnapshot(self._version, self._matching(collection, watcher.filters))
                try:
                    watcher.listener(snapshot)
                except Exception as e:
                    # A broken listener ends its own watch only
                    logger.error(f"Snapshot listener failed for {collection}: {e}")
                    self._remove(watcher)
                    if watcher.on_error is not None:
                        watcher.on_error(StoreUnavailableError(f"Watch on {collection} stopped: {e}"))

    def _remove(self, watcher: _Watcher) -> None:
        watcher.active = False
        if watcher in self._watchers:
            self._watchers.remove(watcher)

    async def add(self, collection: str, fields: Dict[str, Any]) -> str:
        with tracer.start_as_current_span("store.add") as span:
            span.set_attribute("store.collection", collection)
            self._ensure_available()

            async with self._lock:
                doc_id = generate_object_id()
                document = copy.deepcopy(fields)
                document["id"] = doc_id
                self._collection(collection)[doc_id] = document
                self._version += 1
                self._notify(collection)

            logger.info(f"Created document in {collection}: {doc_id}")
            return doc_id

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        self._ensure_available()
        document = self._collection(collection).get(doc_id)
        return copy.deepcopy(document) if document is not None else None

    async def update(
        self,
        collection: str,
        doc_id: str,
        fields: Dict[str, Any],
        expected: Optional[Dict[str, Any]] = None
    ) -> None:
        with tracer.start_as_current_span("store.update") as span:
            span.set_attributes({
                "store.collection": collection,
                "store.document_id": doc_id,
                "store.conditional": bool(expected)
            })
            self._ensure_available()

            async with self._lock:
                document = self._collection(collection).get(doc_id)
                if document is None:
                    raise DocumentNotFoundError(f"No document {doc_id} in {collection}")

                if not matches_filters(document, expected):
                    span.set_attribute("store.result", "precondition_failed")
                    raise PreconditionFailedError(f"Document {doc_id} in {collection} changed concurrently")

                document.update(copy.deepcopy(fields))
                self._version += 1
                self._notify(collection)

            span.set_attribute("store.result", "success")
            logger.info(f"Updated document {doc_id} in {collection}")

    def watch(
        self,
        collection: str,
        listener: SnapshotListener,
        filters: Optional[Dict[str, Any]] = None,
        on_error: Optional[ErrorListener] = None
    ) -> Unsubscribe:
        self._ensure_available()
        watcher = _Watcher(collection, listener, filters, on_error)
        self._watchers.append(watcher)
        try:
            listener(StoreSnapshot(self._version, self._matching(collection, filters)))
        except Exception:
            self._remove(watcher)
            raise

        def unsubscribe() -> None:
            self._remove(watcher)

        return unsubscribe

    @property
    def watcher_count(self) -> int:
        return len(self._watchers)

    async def close(self) -> None:
        self._watchers.clear()
