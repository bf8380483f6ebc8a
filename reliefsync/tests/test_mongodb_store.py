# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for the MongoDB document store.

The Mongo client is replaced with mocks so these tests run without a server.
"""

import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock
from bson import ObjectId
from pymongo.errors import ConnectionFailure, PyMongoError

from reliefsync.services.mongodb import MongoDocumentStore
from reliefsync.services.store import (
    REPORTS,
    VOLUNTEER_TASKS,
    DocumentNotFoundError,
    PreconditionFailedError,
    StoreUnavailableError,
)


class FakeChangeStream:
    """Async change stream yielding canned change events."""

    def __init__(self, changes):
        self.changes = list(changes)
        self.closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.closed = True
        return False

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self.changes:
            raise StopAsyncIteration
        return self.changes.pop(0)


class TestMongoDocumentStore:
    """Test MongoDB store against a mocked client."""

    def setup_method(self):
        self.collection = MagicMock()
        self.database = MagicMock()
        self.database.__getitem__.return_value = self.collection
        self.client = MagicMock()
        self.client.__getitem__.return_value = self.database
        self.client.close = AsyncMock()
        self.store = MongoDocumentStore(
            connection_string="mongodb://localhost:27017/reliefsync_test",
            database_name="reliefsync_test",
            collection_prefix="relief-app",
            client=self.client
        )

    def test_collection_namespacing(self):
        self.store.get_collection(REPORTS)

        self.client.__getitem__.assert_called_with("reliefsync_test")
        self.database.__getitem__.assert_called_with("relief-app_reports")

    def test_add_returns_object_id(self):
        object_id = ObjectId()
        self.collection.insert_one = AsyncMock(return_value=MagicMock(inserted_id=object_id))

        doc_id = asyncio.run(self.store.add(REPORTS, {"id": None, "details": "Flood"}))

        assert doc_id == str(object_id)
        inserted = self.collection.insert_one.call_args[0][0]
        assert "id" not in inserted
        assert isinstance(inserted["_id"], ObjectId)
        assert inserted["details"] == "Flood"

    def test_add_failure_is_unavailable(self):
        self.collection.insert_one = AsyncMock(side_effect=ConnectionFailure("down"))

        with pytest.raises(StoreUnavailableError):
            asyncio.run(self.store.add(REPORTS, {"details": "Flood"}))

    def test_get_exposes_string_id(self):
        object_id = ObjectId()
        self.collection.find_one = AsyncMock(return_value={"_id": object_id, "details": "Flood"})

        document = asyncio.run(self.store.get(REPORTS, str(object_id)))

        assert document == {"id": str(object_id), "details": "Flood"}
        self.collection.find_one.assert_awaited_once_with({"_id": object_id})

    def test_get_invalid_id_is_absent(self):
        self.collection.find_one = AsyncMock()

        assert asyncio.run(self.store.get(REPORTS, "not-an-object-id")) is None
        self.collection.find_one.assert_not_awaited()

    def test_conditional_update_query(self):
        object_id = ObjectId()
        self.collection.update_one = AsyncMock(return_value=MagicMock(matched_count=1))

        asyncio.run(self.store.update(
            VOLUNTEER_TASKS, str(object_id), {"status": "assigned"}, expected={"status": "pending"}
        ))

        self.collection.update_one.assert_awaited_once_with(
            {"_id": object_id, "status": "pending"},
            {"$set": {"status": "assigned"}}
        )

    def test_update_precondition_failed(self):
        self.collection.update_one = AsyncMock(return_value=MagicMock(matched_count=0))
        self.collection.count_documents = AsyncMock(return_value=1)

        with pytest.raises(PreconditionFailedError):
            asyncio.run(self.store.update(
                VOLUNTEER_TASKS, str(ObjectId()), {"status": "assigned"}, expected={"status": "pending"}
            ))

    def test_update_missing_document(self):
        self.collection.update_one = AsyncMock(return_value=MagicMock(matched_count=0))
        self.collection.count_documents = AsyncMock(return_value=0)

        with pytest.raises(DocumentNotFoundError):
            asyncio.run(self.store.update(VOLUNTEER_TASKS, str(ObjectId()), {"status": "assigned"}))

    def test_update_invalid_id(self):
        with pytest.raises(DocumentNotFoundError):
            asyncio.run(self.store.update(VOLUNTEER_TASKS, "bogus", {"status": "assigned"}))

    def test_health_check(self):
        self.client.admin.command = AsyncMock(return_value={"ok": 1})
        health = asyncio.run(self.store.health_check())

        assert health["status"] == "healthy"
        assert health["ping"] is True
        assert health["database"] == "reliefsync_test"

    def test_health_check_failure(self):
        self.client.admin.command = AsyncMock(side_effect=ConnectionFailure("down"))
        health = asyncio.run(self.store.health_check())

        assert health["status"] == "unhealthy"
        assert "down" in health["error"]

    def test_create_indexes(self):
        self.collection.create_index = AsyncMock()
        asyncio.run(self.store.create_indexes())

        assert self.collection.create_index.await_count == 7

    def test_close(self):
        asyncio.run(self.store.close())
        self.client.close.assert_awaited_once()


class TestMongoWatch:
    """Test change-stream backed watches."""

    def setup_method(self):
        self.object_id = ObjectId()
        self.collection = MagicMock()
        database = MagicMock()
        database.__getitem__.return_value = self.collection
        client = MagicMock()
        client.__getitem__.return_value = database
        client.close = AsyncMock()
        self.store = MongoDocumentStore(database_name="reliefsync_test", collection_prefix="app", client=client)

        cursor = MagicMock()
        cursor.to_list = AsyncMock(side_effect=lambda length=None: [{"_id": self.object_id, "status": "pending"}])
        self.collection.find.return_value = cursor

    def test_initial_and_change_snapshots(self):
        snapshots = []
        stream = FakeChangeStream([{"operationType": "update"}])
        self.collection.watch = AsyncMock(return_value=stream)

        async def scenario():
            unsubscribe = self.store.watch(REPORTS, snapshots.append, filters={"status": "pending"})
            for _ in range(10):
                await asyncio.sleep(0)
            unsubscribe()

        asyncio.run(scenario())

        assert [snapshot.version for snapshot in snapshots] == [1, 2]
        assert snapshots[0].documents == [{"id": str(self.object_id), "status": "pending"}]
        self.collection.find.assert_called_with({"status": "pending"})
        assert stream.closed

    def test_broken_stream_reports_error(self):
        errors = []
        self.collection.watch = AsyncMock(side_effect=PyMongoError("change streams need a replica set"))

        async def scenario():
            self.store.watch(REPORTS, lambda snapshot: None, on_error=errors.append)
            for _ in range(5):
                await asyncio.sleep(0)
            await self.store.close()

        asyncio.run(scenario())

        assert len(errors) == 1
        assert isinstance(errors[0], StoreUnavailableError)

    def test_no_error_after_unsubscribe(self):
        errors = []
        self.collection.watch = AsyncMock(side_effect=PyMongoError("boom"))

        async def scenario():
            unsubscribe = self.store.watch(REPORTS, lambda snapshot: None, on_error=errors.append)
            unsubscribe()
            await asyncio.sleep(0)

        asyncio.run(scenario())
        assert errors == []

    def test_failing_listener_reports_error(self):
        errors = []
        stream = FakeChangeStream([{"operationType": "insert"}])
        self.collection.watch = AsyncMock(return_value=stream)

        def broken(snapshot):
            raise KeyError("title")

        async def scenario():
            self.store.watch(REPORTS, broken, on_error=errors.append)
            for _ in range(10):
                await asyncio.sleep(0)
            await self.store.close()

        asyncio.run(scenario())

        assert len(errors) == 1
        assert isinstance(errors[0], StoreUnavailableError)
        assert "title" in str(errors[0])
        assert stream.closed
