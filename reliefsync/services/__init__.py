# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Services package - Store adapters, external integrations and side effects.
"""

from .store import (
    DocumentStore,
    InMemoryDocumentStore,
    StoreSnapshot,
    StoreError,
    StoreUnavailableError,
    DocumentNotFoundError,
    PreconditionFailedError,
    REPORTS,
    RESOURCE_REQUESTS,
    VOLUNTEER_TASKS,
    BROADCASTS,
)
from .mongodb import MongoDocumentStore
from .geocoding import GeocodingClient, GeocodingTransportError
from .location import LocationResolver
from .sync import SyncChannel, Subscription, EntitySet
from .coordination import CoordinationFacade, create_facade

__all__ = [
    "DocumentStore",
    "InMemoryDocumentStore",
    "StoreSnapshot",
    "StoreError",
    "StoreUnavailableError",
    "DocumentNotFoundError",
    "PreconditionFailedError",
    "REPORTS",
    "RESOURCE_REQUESTS",
    "VOLUNTEER_TASKS",
    "BROADCASTS",
    "MongoDocumentStore",
    "GeocodingClient",
    "GeocodingTransportError",
    "LocationResolver",
    "SyncChannel",
    "Subscription",
    "EntitySet",
    "CoordinationFacade",
    "create_facade",
]
