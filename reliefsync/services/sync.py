# SPDX-License-Identifier: Apache-2.0

"""
Real-time synchronization channel.

Turns a watched store collection into a live sequence of entity sets. Each
delivered EntitySet is the entire current matching set and replaces the
previous one; consumers never patch. Use subscriptions as async context
managers so they are released on every exit path:

    async with channel.subscribe(BROADCASTS, limit=3) as updates:
        async for broadcasts in updates:
            render(broadcasts)
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, Optional, Set, Tuple, Type

from pydantic import ValidationError

from ..models.base import BaseEntity
from ..models.entities import Broadcast, Report, ResourceRequest, VolunteerTask
from .store import (
    BROADCASTS,
    REPORTS,
    RESOURCE_REQUESTS,
    VOLUNTEER_TASKS,
    DocumentStore,
    StoreError,
    StoreSnapshot,
    Unsubscribe,
)

logger = logging.getLogger(__name__)

ENTITY_MODELS: Dict[str, Type[BaseEntity]] = {
    REPORTS: Report,
    RESOURCE_REQUESTS: ResourceRequest,
    VOLUNTEER_TASKS: VolunteerTask,
    BROADCASTS: Broadcast,
}

Predicate = Callable[[Any], bool]


def creation_instant(entity: BaseEntity):
    """Creation timestamp of any entity kind."""
    return getattr(entity, "created_at", None) or getattr(entity, "timestamp")


@dataclass(frozen=True)
class EntitySet:
    """Whole matching set of one subscription, newest first."""
    version: int
    entities: Tuple[BaseEntity, ...] = ()

    def __len__(self) -> int:
        return len(self.entities)

    def __iter__(self) -> Iterator[BaseEntity]:
        return iter(self.entities)

    @property
    def ids(self) -> Tuple[Optional[str], ...]:
        return tuple(entity.id for entity in self.entities)

    def get(self, entity_id: str) -> Optional[BaseEntity]:
        for entity in self.entities:
            if entity.id == entity_id:
                return entity
        return None


class Subscription:
    """
    Live, ordered, deduplicated stream of entity sets for one query.

    Only the most recent undelivered set is kept: a slow consumer skips
    intermediate states but always receives the latest one. Sets never go
    backwards in version and a set equal to the last delivered one is not
    delivered again.
    """

    def __init__(self, channel: "SyncChannel", collection: str, model: Type[BaseEntity],
                 predicate: Optional[Predicate] = None, limit: Optional[int] = None):
        self.channel = channel
        self.collection = collection
        self.model = model
        self.predicate = predicate
        self.limit = limit

        self._event = asyncio.Event()
        self._pending: Optional[EntitySet] = None
        self._delivered: Optional[EntitySet] = None
        self._last_version = -1
        self._error: Optional[Exception] = None
        self._closed = False
        self._unsubscribe: Optional[Unsubscribe] = None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def latest(self) -> Optional[EntitySet]:
        """Last entity set handed to the consumer."""
        return self._delivered

    def _attach(self, unsubscribe: Unsubscribe) -> None:
        if self._closed:
            unsubscribe()
        else:
            self._unsubscribe = unsubscribe

    def _build(self, snapshot: StoreSnapshot) -> EntitySet:
        entities = []
        for document in snapshot.documents:
            try:
                entity = self.model.from_document(document)
            except ValidationError as e:
                logger.warning(
                    f"Skipping invalid {self.collection} document {document.get('id')}: "
                    f"{e.error_count()} validation errors"
                )
                continue
            if self.predicate is None or self.predicate(entity):
                entities.append(entity)

        entities.sort(key=lambda entity: entity.id or "", reverse=True)
        entities.sort(key=creation_instant, reverse=True)
        if self.limit is not None:
            entities = entities[:self.limit]
        return EntitySet(version=snapshot.version, entities=tuple(entities))

    def _on_snapshot(self, snapshot: StoreSnapshot) -> None:
        """Store callback; runs to completion without suspending."""
        if self._closed or self._error is not None or snapshot.version <= self._last_version:
            return
        self._last_version = snapshot.version

        try:
            entity_set = self._build(snapshot)
        except Exception as e:
            # Raised to the consumer on its next read
            self._fail(e)
            return
        if self._delivered is not None and entity_set.entities == self._delivered.entities:
            # Back to what the consumer already has
            self._pending = None
            return
        if self._pending is not None and entity_set.entities == self._pending.entities:
            return

        self._pending = entity_set
        self._event.set()

    def _on_error(self, error: StoreError) -> None:
        if self._closed:
            return
        logger.error(f"Subscription on {self.collection} lost its store watch: {error}")
        self._error = error
        self._event.set()

    def _fail(self, error: Exception) -> None:
        logger.error(f"Subscription on {self.collection} failed to build a snapshot: {error!r}")
        self._error = error
        self._pending = None
        self._event.set()

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> EntitySet:
        while True:
            if self._pending is not None:
                entity_set, self._pending = self._pending, None
                self._delivered = entity_set
                return entity_set
            if self._error is not None:
                error = self._error
                self.close()
                raise error
            if self._closed:
                raise StopAsyncIteration
            self._event.clear()
            await self._event.wait()

    async def next_snapshot(self, timeout: Optional[float] = None) -> EntitySet:
        """Wait for the next entity set, optionally bounded by ``timeout`` seconds."""
        return await asyncio.wait_for(self.__anext__(), timeout)

    def close(self) -> None:
        """Stop delivery immediately and detach from the store."""
        if self._closed:
            return
        self._closed = True
        self._pending = None
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.channel._release(self)
        self._event.set()
        logger.debug(f"Closed subscription on {self.collection}")

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()


class SyncChannel:
    """Creates and tracks subscriptions over a document store."""

    def __init__(self, store: DocumentStore):
        self.store = store
        self._subscriptions: Set[Subscription] = set()

    def subscribe(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        predicate: Optional[Predicate] = None,
        limit: Optional[int] = None
    ) -> Subscription:
        """
        Subscribe to a collection.

        Args:
            collection: Logical collection name
            filters: Document-level equality filters applied by the store
            predicate: Entity-level filter applied after parsing
            limit: Keep only the newest ``limit`` entities

        Returns:
            Subscription whose first entity set is the state at subscription time
        """
        if collection not in ENTITY_MODELS:
            raise ValueError(f"Unknown collection: {collection}")
        if limit is not None and limit < 1:
            raise ValueError("limit must be positive")

        subscription = Subscription(self, collection, ENTITY_MODELS[collection], predicate, limit)
        self._subscriptions.add(subscription)
        try:
            unsubscribe = self.store.watch(
                collection, subscription._on_snapshot, filters, subscription._on_error
            )
        except Exception:
            self._subscriptions.discard(subscription)
            raise

        subscription._attach(unsubscribe)
        logger.debug(f"Opened subscription on {collection} (filters={filters}, limit={limit})")
        return subscription

    def _release(self, subscription: Subscription) -> None:
        self._subscriptions.discard(subscription)

    @property
    def open_subscriptions(self) -> int:
        return len(self._subscriptions)

    def close(self) -> None:
        """Release every subscription still open."""
        for subscription in list(self._subscriptions):
            logger.warning(f"Releasing subscription on {subscription.collection} that was never closed")
            subscription.close()
