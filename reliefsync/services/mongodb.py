# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
MongoDB document store with change-stream backed watches and connection pooling.
"""

import asyncio
import os
import logging
from typing import Any, Dict, List, Optional
from pymongo import AsyncMongoClient, ASCENDING, DESCENDING
from pymongo.errors import (
    ConnectionFailure,
    ServerSelectionTimeoutError,
    PyMongoError
)
from bson import ObjectId
from bson.errors import InvalidId
from opentelemetry import trace

from .store import (
    BROADCASTS,
    COLLECTIONS,
    REPORTS,
    RESOURCE_REQUESTS,
    VOLUNTEER_TASKS,
    DocumentNotFoundError,
    DocumentStore,
    ErrorListener,
    PreconditionFailedError,
    SnapshotListener,
    StoreSnapshot,
    StoreUnavailableError,
    Unsubscribe,
)

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


def _to_entity_document(document: Dict[str, Any]) -> Dict[str, Any]:
    """Expose the ObjectId as a string ``id``."""
    if "_id" in document:
        document["id"] = str(document["_id"])
        del document["_id"]
    return document


class MongoDocumentStore(DocumentStore):
    """MongoDB-backed document store with connection pooling."""

    def __init__(self, connection_string: str = None, database_name: str = None,
                 collection_prefix: str = None, client: Optional[AsyncMongoClient] = None):
        """Initialize MongoDB store with connection pooling."""
        self.connection_string = connection_string or os.getenv(
            'MONGODB_URI',
            'mongodb://localhost:27017/reliefsync_dev'
        )
        self.database_name = database_name or os.getenv('MONGODB_DATABASE', 'reliefsync_dev')
        self.collection_prefix = collection_prefix or os.getenv('RELIEFSYNC_APP_ID', 'default')
        self._client: Optional[AsyncMongoClient] = client
        self._watch_tasks: List[asyncio.Task] = []

        # Connection pool settings
        self.max_pool_size = int(os.getenv('MONGODB_MAX_POOL_SIZE', '10'))
        self.min_pool_size = int(os.getenv('MONGODB_MIN_POOL_SIZE', '1'))
        self.server_selection_timeout_ms = int(os.getenv('MONGODB_SERVER_SELECTION_TIMEOUT_MS', '5000'))

        logger.info(f"MongoDB store initialized for database: {self.database_name}")

    @property
    def client(self) -> AsyncMongoClient:
        """Get MongoDB client with connection pooling."""
        if self._client is None:
            self._client = AsyncMongoClient(
                self.connection_string,
                maxPoolSize=self.max_pool_size,
                minPoolSize=self.min_pool_size,
                serverSelectionTimeoutMS=self.server_selection_timeout_ms,
                tz_aware=True,
                retryWrites=True,
                retryReads=True
            )
        return self._client

    @property
    def database(self):
        """Get MongoDB database."""
        return self.client[self.database_name]

    def collection_name(self, collection: str) -> str:
        """Namespace a logical collection by application id."""
        return f"{self.collection_prefix}_{collection}"

    def get_collection(self, collection: str):
        """Get MongoDB collection for a logical collection name."""
        return self.database[self.collection_name(collection)]

    async def health_check(self) -> Dict[str, Any]:
        """Check MongoDB connection health."""
        try:
            result = await self.client.admin.command('ping')
            return {
                'status': 'healthy',
                'ping': result.get('ok') == 1,
                'database': self.database_name,
                'connection_pool_size': self.max_pool_size
            }
        except PyMongoError as e:
            logger.error(f"MongoDB health check failed: {e}")
            return {
                'status': 'unhealthy',
                'error': str(e),
                'database': self.database_name
            }

    def _validate_object_id(self, doc_id: str) -> ObjectId:
        """Validate and convert string ID to ObjectId."""
        try:
            return ObjectId(doc_id)
        except (InvalidId, TypeError):
            raise DocumentNotFoundError(f"Invalid ObjectId format: {doc_id}")

    async def add(self, collection: str, fields: Dict[str, Any]) -> str:
        """Insert a document and return its id."""
        with tracer.start_as_current_span("mongodb.add") as span:
            span.set_attribute("db.collection", collection)
            try:
                document = dict(fields)
                document.pop("id", None)
                document["_id"] = ObjectId()

                result = await self.get_collection(collection).insert_one(document)

                logger.info(f"Created document in {collection}: {result.inserted_id}")
                return str(result.inserted_id)

            except PyMongoError as e:
                logger.error(f"Failed to create document in {collection}: {e}")
                raise StoreUnavailableError(f"Could not write to {collection}: {e}") from e

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Find a single document by ID."""
        try:
            object_id = self._validate_object_id(doc_id)
        except DocumentNotFoundError:
            logger.debug(f"Invalid document ID {doc_id} for {collection}")
            return None

        try:
            document = await self.get_collection(collection).find_one({"_id": object_id})
        except PyMongoError as e:
            logger.error(f"Failed to find document {doc_id} in {collection}: {e}")
            raise StoreUnavailableError(f"Could not read from {collection}: {e}") from e

        if document is None:
            logger.debug(f"Document {doc_id} not found in {collection}")
            return None
        return _to_entity_document(document)

    async def update(
        self,
        collection: str,
        doc_id: str,
        fields: Dict[str, Any],
        expected: Optional[Dict[str, Any]] = None
    ) -> None:
        """Update a document, optionally only if it still matches ``expected``."""
        with tracer.start_as_current_span("mongodb.update") as span:
            span.set_attributes({
                "db.collection": collection,
                "db.document_id": doc_id,
                "db.conditional": bool(expected)
            })
            object_id = self._validate_object_id(doc_id)
            query = {"_id": object_id}
            if expected:
                query.update(expected)

            try:
                collection_obj = self.get_collection(collection)
                result = await collection_obj.update_one(query, {"$set": fields})

                if result.matched_count == 0:
                    exists = await collection_obj.count_documents({"_id": object_id}, limit=1)
                    if not exists:
                        raise DocumentNotFoundError(f"No document {doc_id} in {collection}")
                    span.set_attribute("db.result", "precondition_failed")
                    raise PreconditionFailedError(f"Document {doc_id} in {collection} changed concurrently")

            except PyMongoError as e:
                logger.error(f"Failed to update document {doc_id} in {collection}: {e}")
                raise StoreUnavailableError(f"Could not write to {collection}: {e}") from e

            span.set_attribute("db.result", "success")
            logger.info(f"Updated document {doc_id} in {collection}")

    async def find(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Find all documents matching equality filters."""
        cursor = self.get_collection(collection).find(filters or {})
        documents = await cursor.to_list(length=None)
        return [_to_entity_document(document) for document in documents]

    def watch(
        self,
        collection: str,
        listener: SnapshotListener,
        filters: Optional[Dict[str, Any]] = None,
        on_error: Optional[ErrorListener] = None
    ) -> Unsubscribe:
        """
        Watch a collection through a change stream.

        Every change re-reads the filtered collection and pushes the full set.
        Must be called from a running event loop.
        """
        state = {"active": True}
        task = asyncio.get_running_loop().create_task(
            self._watch_loop(collection, listener, filters, on_error, state)
        )
        self._watch_tasks.append(task)

        def unsubscribe() -> None:
            state["active"] = False
            task.cancel()
            if task in self._watch_tasks:
                self._watch_tasks.remove(task)

        return unsubscribe

    async def _watch_loop(self, collection: str, listener: SnapshotListener,
                          filters: Optional[Dict[str, Any]], on_error: Optional[ErrorListener],
                          state: Dict[str, bool]) -> None:
        version = 0

        async def deliver() -> None:
            nonlocal version
            documents = await self.find(collection, filters)
            version += 1
            if state["active"]:
                listener(StoreSnapshot(version, documents))

        try:
            stream = await self.get_collection(collection).watch()
            async with stream:
                # Open the stream before the first read so no write is missed
                await deliver()
                async for _change in stream:
                    await deliver()
        except (ConnectionFailure, ServerSelectionTimeoutError) as e:
            logger.error(f"Lost change stream on {collection}: {e}")
            self._report_watch_error(collection, e, on_error, state)
        except PyMongoError as e:
            logger.error(f"Change stream on {collection} failed: {e}")
            self._report_watch_error(collection, e, on_error, state)
        except Exception as e:
            # Listener failures end the watch like a broken stream
            logger.error(f"Snapshot listener failed for {collection}: {e}")
            self._report_watch_error(collection, e, on_error, state)

    def _report_watch_error(self, collection: str, error: Exception,
                            on_error: Optional[ErrorListener], state: Dict[str, bool]) -> None:
        if state["active"] and on_error is not None:
            on_error(StoreUnavailableError(f"Watch on {collection} stopped: {error}"))

    async def create_indexes(self) -> None:
        """Create indexes backing the engine's queries."""
        try:
            logger.info("Creating MongoDB indexes...")

            reports = self.get_collection(REPORTS)
            await reports.create_index([("userId", ASCENDING), ("timestamp", DESCENDING)])
            await reports.create_index([("status", ASCENDING)])

            requests = self.get_collection(RESOURCE_REQUESTS)
            await requests.create_index([("status", ASCENDING), ("timestamp", DESCENDING)])
            await requests.create_index([("requestType", ASCENDING)])

            tasks = self.get_collection(VOLUNTEER_TASKS)
            await tasks.create_index([("status", ASCENDING), ("createdAt", DESCENDING)])
            await tasks.create_index([("assignedTo", ASCENDING)])

            broadcasts = self.get_collection(BROADCASTS)
            await broadcasts.create_index([("timestamp", DESCENDING)])

            logger.info("MongoDB indexes created successfully")

        except PyMongoError as e:
            logger.error(f"Failed to create MongoDB indexes: {e}")
            raise

    async def close(self) -> None:
        """Cancel open watches and close the MongoDB connection."""
        for task in self._watch_tasks:
            task.cancel()
        self._watch_tasks.clear()

        if self._client is not None:
            await self._client.close()
            self._client = None
            logger.info("MongoDB connection closed")


__all__ = ["MongoDocumentStore", "COLLECTIONS"]
