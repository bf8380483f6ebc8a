# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Pytest configuration and fixtures.
"""

import os
import pytest
from datetime import datetime, timedelta, timezone
from typing import Dict, List

import httpx

from reliefsync.models.entities import ActorContext
from reliefsync.models.enums import ActorRole
from reliefsync.services.coordination import CoordinationFacade
from reliefsync.services.geocoding import GeocodingClient
from reliefsync.services.location import LocationResolver
from reliefsync.services.store import InMemoryDocumentStore
from reliefsync.services.sync import SyncChannel

# Set test environment
os.environ['ENVIRONMENT'] = 'test'
os.environ['OTEL_ENABLED'] = 'false'

SECUNDERABAD = {"lat": 17.4399, "lng": 78.4983}

# Canned provider answers keyed by address
GEOCODING_ANSWERS: Dict[str, Dict] = {
    "Secunderabad": {
        "status": "OK",
        "results": [
            {"geometry": {"location": SECUNDERABAD}},
            {"geometry": {"location": {"lat": 17.5, "lng": 78.5}}},
        ],
    },
    "Hyderabad": {
        "status": "OK",
        "results": [{"geometry": {"location": {"lat": 17.385, "lng": 78.4867}}}],
    },
    "Xyzzy123": {"status": "ZERO_RESULTS", "results": []},
    "Quota Place": {"status": "OVER_QUERY_LIMIT", "results": [], "error_message": "quota"},
    "Denied Place": {"status": "REQUEST_DENIED", "results": [], "error_message": "bad key"},
    "Broken Place": {"status": "UNKNOWN_ERROR", "results": []},
}


class FakeClock:
    """Deterministic clock advancing one second per reading."""

    def __init__(self, start: datetime = None):
        self.now = start or datetime(2024, 8, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        current = self.now
        self.now = current + timedelta(seconds=1)
        return current


@pytest.fixture
def geocoding_calls() -> List[str]:
    """Addresses sent to the fake geocoding provider, in order."""
    return []


@pytest.fixture
def geocoding_handler(geocoding_calls):
    """httpx mock handler answering from GEOCODING_ANSWERS."""
    def handler(request: httpx.Request) -> httpx.Response:
        address = request.url.params.get("address")
        geocoding_calls.append(address)

        if address == "Offline Place":
            raise httpx.ConnectError("Network unreachable", request=request)
        if address == "Server Error Place":
            return httpx.Response(500, text="internal error")
        if address == "Garbled Place":
            return httpx.Response(200, text="<html>not json</html>")

        return httpx.Response(200, json=GEOCODING_ANSWERS.get(address, {"status": "ZERO_RESULTS", "results": []}))

    return handler


@pytest.fixture
def geocoder(geocoding_handler):
    """Geocoding client talking to the mock transport."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(geocoding_handler))
    return GeocodingClient(api_key="test-key", base_url="https://geocode.test/json", client=client)


@pytest.fixture
def resolver(geocoder):
    return LocationResolver(geocoder)


@pytest.fixture
def store():
    """Fresh in-memory document store."""
    return InMemoryDocumentStore()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def facade(store, resolver, clock):
    """Coordination facade over the in-memory store and mock geocoder."""
    return CoordinationFacade(store, resolver, SyncChannel(store), clock=clock)


@pytest.fixture
def admin():
    return ActorContext(actor_id="admin-1", role=ActorRole.ADMIN)


@pytest.fixture
def ngo():
    return ActorContext(actor_id="ngo-1", role=ActorRole.NGO)


@pytest.fixture
def volunteer():
    return ActorContext(actor_id="volunteer-1", role=ActorRole.VOLUNTEER)


@pytest.fixture
def second_volunteer():
    return ActorContext(actor_id="volunteer-2", role=ActorRole.VOLUNTEER)


@pytest.fixture
def victim():
    return ActorContext(actor_id="victim-1", role=ActorRole.VICTIM)
