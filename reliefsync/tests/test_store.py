# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for the in-memory document store.
"""

import asyncio
import pytest
from bson import ObjectId

from reliefsync.services.store import (
    REPORTS,
    VOLUNTEER_TASKS,
    DocumentNotFoundError,
    InMemoryDocumentStore,
    PreconditionFailedError,
    StoreUnavailableError,
    matches_filters,
)


class TestInMemoryDocumentStore:
    """Test CRUD and conditional updates."""

    def setup_method(self):
        self.store = InMemoryDocumentStore()

    def test_add_and_get(self):
        async def scenario():
            doc_id = await self.store.add(REPORTS, {"details": "Flooded street", "status": "pending"})
            return doc_id, await self.store.get(REPORTS, doc_id)

        doc_id, document = asyncio.run(scenario())

        assert ObjectId.is_valid(doc_id)
        assert document == {"details": "Flooded street", "status": "pending", "id": doc_id}

    def test_get_missing(self):
        assert asyncio.run(self.store.get(REPORTS, "missing")) is None

    def test_documents_are_copies(self):
        async def scenario():
            fields = {"requiredSkills": ["Driving"]}
            doc_id = await self.store.add(VOLUNTEER_TASKS, fields)
            fields["requiredSkills"].append("Cooking")
            document = await self.store.get(VOLUNTEER_TASKS, doc_id)
            document["requiredSkills"].append("Swimming")
            return await self.store.get(VOLUNTEER_TASKS, doc_id)

        assert asyncio.run(scenario())["requiredSkills"] == ["Driving"]

    def test_update_fields(self):
        async def scenario():
            doc_id = await self.store.add(VOLUNTEER_TASKS, {"status": "pending", "title": "Cook"})
            await self.store.update(VOLUNTEER_TASKS, doc_id, {"status": "assigned", "assignedTo": "v-1"})
            return await self.store.get(VOLUNTEER_TASKS, doc_id)

        document = asyncio.run(scenario())
        assert document["status"] == "assigned"
        assert document["assignedTo"] == "v-1"
        assert document["title"] == "Cook"

    def test_conditional_update_applies_once(self):
        async def scenario():
            doc_id = await self.store.add(VOLUNTEER_TASKS, {"status": "pending"})
            await self.store.update(VOLUNTEER_TASKS, doc_id, {"status": "assigned", "assignedTo": "v-1"},
                                    expected={"status": "pending"})
            with pytest.raises(PreconditionFailedError):
                await self.store.update(VOLUNTEER_TASKS, doc_id, {"status": "assigned", "assignedTo": "v-2"},
                                        expected={"status": "pending"})
            return await self.store.get(VOLUNTEER_TASKS, doc_id)

        assert asyncio.run(scenario())["assignedTo"] == "v-1"

    def test_update_missing_document(self):
        with pytest.raises(DocumentNotFoundError):
            asyncio.run(self.store.update(REPORTS, "missing", {"status": "resolved"}))

    def test_unavailable_store(self):
        self.store.available = False
        with pytest.raises(StoreUnavailableError):
            asyncio.run(self.store.add(REPORTS, {"details": "x"}))
        with pytest.raises(StoreUnavailableError):
            asyncio.run(self.store.get(REPORTS, "any"))
        with pytest.raises(StoreUnavailableError):
            self.store.watch(REPORTS, lambda snapshot: None)


class TestWatch:
    """Test watch notifications."""

    def setup_method(self):
        self.store = InMemoryDocumentStore()
        self.snapshots = []

    def test_initial_snapshot_delivered_immediately(self):
        asyncio.run(self.store.add(REPORTS, {"userId": "a"}))
        self.store.watch(REPORTS, self.snapshots.append)

        assert len(self.snapshots) == 1
        assert [d["userId"] for d in self.snapshots[0].documents] == ["a"]

    def test_versions_increase_with_writes(self):
        self.store.watch(REPORTS, self.snapshots.append)

        async def scenario():
            doc_id = await self.store.add(REPORTS, {"status": "pending"})
            await self.store.update(REPORTS, doc_id, {"status": "resolved"})

        asyncio.run(scenario())

        versions = [snapshot.version for snapshot in self.snapshots]
        assert versions == sorted(versions)
        assert len(set(versions)) == 3
        assert self.snapshots[-1].documents[0]["status"] == "resolved"

    def test_filters_and_collections(self):
        self.store.watch(REPORTS, self.snapshots.append, filters={"userId": "a"})

        async def scenario():
            await self.store.add(REPORTS, {"userId": "a"})
            await self.store.add(REPORTS, {"userId": "b"})
            await self.store.add(VOLUNTEER_TASKS, {"userId": "a"})

        asyncio.run(scenario())

        # Initial plus one per report write; other collections do not notify
        assert len(self.snapshots) == 3
        assert [len(snapshot.documents) for snapshot in self.snapshots] == [0, 1, 1]

    def test_unsubscribe_stops_delivery(self):
        unsubscribe = self.store.watch(REPORTS, self.snapshots.append)
        unsubscribe()
        asyncio.run(self.store.add(REPORTS, {"userId": "a"}))

        assert len(self.snapshots) == 1
        assert self.store.watcher_count == 0

    def test_failing_listener_ends_only_its_watch(self):
        errors = []

        def broken(snapshot):
            if snapshot.documents:
                raise RuntimeError("render failed")

        self.store.watch(REPORTS, broken, on_error=errors.append)
        self.store.watch(REPORTS, self.snapshots.append)
        asyncio.run(self.store.add(REPORTS, {"userId": "a"}))
        asyncio.run(self.store.add(REPORTS, {"userId": "b"}))

        assert len(self.snapshots) == 3
        assert len(errors) == 1
        assert isinstance(errors[0], StoreUnavailableError)
        assert "render failed" in str(errors[0])
        assert self.store.watcher_count == 1

    def test_failing_first_delivery_leaves_no_watcher(self):
        def broken(snapshot):
            raise KeyError("title")

        with pytest.raises(KeyError):
            self.store.watch(REPORTS, broken)
        assert self.store.watcher_count == 0


def test_matches_filters():
    assert matches_filters({"a": 1}, None)
    assert matches_filters({"a": 1, "b": 2}, {"a": 1})
    assert not matches_filters({"a": 1}, {"a": 2})
    assert not matches_filters({}, {"a": 1})
