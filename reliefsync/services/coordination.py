# SPDX-License-Identifier: Apache-2.0

"""
Coordination facade exposed to the presentation layer.

Every operation authorizes first, resolves the location when it carries one,
applies the lifecycle transition and only then writes to the store, so a
failed operation leaves no persisted trace. Failures come back as
OperationResult values with a message the user can act on.

Transitions on existing entities read the entity before authorizing when the
rule depends on it (requester for fulfill, assignee for complete), and write
with a conditional update on the status they observed. When two actors race
on the same entity the loser gets a failure instead of overwriting the winner.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Tuple, Type, Union

from opentelemetry import trace
from pydantic import ValidationError

from ..config import EngineConfig, STORE_MONGODB
from ..domain import lifecycle
from ..domain.authorization import COORDINATOR_ROLES, authorize
from ..domain.results import Failure, FailureKind, OperationResult, TransitionResult
from ..models.base import BaseEntity, utcnow
from ..models.entities import (
    ActorContext,
    Coordinates,
    Report,
    ResourceRequest,
    VolunteerTask,
)
from ..models.enums import Action
from .geocoding import GeocodingClient
from .location import LocationResolver
from .store import (
    BROADCASTS,
    REPORTS,
    RESOURCE_REQUESTS,
    VOLUNTEER_TASKS,
    DocumentNotFoundError,
    DocumentStore,
    InMemoryDocumentStore,
    PreconditionFailedError,
    StoreError,
)
from .sync import Subscription, SyncChannel

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

CoordinatesInput = Union[Coordinates, Dict[str, float], Tuple[float, float], None]

STORE_UNAVAILABLE_MESSAGE = "The coordination service is unavailable right now. Please try again."

NOT_FOUND_MESSAGES = {
    REPORTS: "Report not found",
    RESOURCE_REQUESTS: "Resource request not found",
    VOLUNTEER_TASKS: "Volunteer task not found",
}


def invalid_input(error: ValidationError) -> Failure:
    """Summarize a pydantic validation error for the user."""
    problems = []
    for item in error.errors():
        field = ".".join(str(part) for part in item.get("loc", ())) or "input"
        problems.append(f"{field}: {item.get('msg')}")
    return Failure(FailureKind.INVALID_INPUT, "Invalid input - " + "; ".join(problems))


def store_unavailable(error: StoreError) -> Failure:
    return Failure(FailureKind.STORE_UNAVAILABLE, STORE_UNAVAILABLE_MESSAGE, str(error))


def _coerce_coordinates(value: CoordinatesInput) -> Optional[Coordinates]:
    if value is None or isinstance(value, Coordinates):
        return value
    if isinstance(value, dict):
        return Coordinates(**value)
    latitude, longitude = value
    return Coordinates(latitude=latitude, longitude=longitude)


class CoordinationFacade:
    """Entry point for all coordination operations."""

    def __init__(
        self,
        store: DocumentStore,
        resolver: LocationResolver,
        channel: Optional[SyncChannel] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self.store = store
        self.resolver = resolver
        self.channel = channel or SyncChannel(store)
        self.clock = clock

    # Helpers

    def _deny(self, actor: ActorContext, action: Action, reason: str) -> OperationResult:
        logger.warning(f"Denied {action.value} for {actor.role} {actor.actor_id}: {reason}")
        return OperationResult.failed(Failure(FailureKind.DENIED, reason))

    def _authorize(self, actor: ActorContext, action: Action, resource: Any = None) -> Optional[OperationResult]:
        decision = authorize(actor.role, action, actor.actor_id, resource)
        if decision.allowed:
            return None
        return self._deny(actor, action, decision.reason)

    async def _create(self, collection: str, entity: BaseEntity) -> OperationResult:
        try:
            entity_id = await self.store.add(collection, entity.to_document())
        except StoreError as e:
            logger.error(f"Failed to persist new entity in {collection}: {e}")
            return OperationResult.failed(store_unavailable(e))
        return OperationResult.ok(entity.model_copy(update={"id": entity_id}))

    async def _load(self, collection: str, model: Type[BaseEntity],
                    entity_id: str) -> Tuple[Optional[BaseEntity], Optional[OperationResult]]:
        try:
            document = await self.store.get(collection, entity_id)
        except StoreError as e:
            logger.error(f"Failed to read {entity_id} from {collection}: {e}")
            return None, OperationResult.failed(store_unavailable(e))

        not_found = OperationResult.failed(Failure(FailureKind.NOT_FOUND, NOT_FOUND_MESSAGES[collection]))
        if document is None:
            return None, not_found

        try:
            return model.from_document(document), None
        except ValidationError as e:
            # Documents that fail the schema are treated as absent
            logger.error(f"Stored {collection} document {entity_id} failed validation: {e}")
            return None, not_found

    async def _persist_transition(
        self,
        collection: str,
        entity_id: str,
        result: TransitionResult,
        conflict: Failure
    ) -> OperationResult:
        if not result.success:
            return OperationResult.failed(result.failure)

        entity = result.entity
        try:
            await self.store.update(
                collection,
                entity_id,
                entity.document_fields(result.changes),
                expected=entity.document_fields(result.expected)
            )
        except PreconditionFailedError as e:
            logger.warning(f"Lost concurrent update on {collection} {entity_id}: {e}")
            return OperationResult.failed(conflict)
        except DocumentNotFoundError:
            return OperationResult.failed(Failure(FailureKind.NOT_FOUND, NOT_FOUND_MESSAGES[collection]))
        except StoreError as e:
            logger.error(f"Failed to update {collection} {entity_id}: {e}")
            return OperationResult.failed(store_unavailable(e))

        return OperationResult.ok(entity)

    # Reports

    async def submit_report(
        self,
        actor: ActorContext,
        report_type: str,
        details: str,
        location: Optional[str] = None,
        coordinates: CoordinatesInput = None
    ) -> OperationResult:
        """Submit an incident report at a typed location or device coordinates."""
        with tracer.start_as_current_span("coordination.submit_report") as span:
            span.set_attribute("actor.role", actor.role)

            denied = self._authorize(actor, Action.CREATE_REPORT)
            if denied:
                return denied

            try:
                coordinates = _coerce_coordinates(coordinates)
            except (ValidationError, TypeError, ValueError) as e:
                return self._bad_coordinates(e)

            resolution = await self.resolver.resolve(location, coordinates)
            if not resolution.success:
                return OperationResult.failed(resolution.failure)

            try:
                report = lifecycle.new_report(
                    actor, report_type, details, location, resolution.coordinates, self.clock()
                )
            except ValidationError as e:
                return OperationResult.failed(invalid_input(e))

            result = await self._create(REPORTS, report)
            if result.success:
                logger.info(f"Report {result.entity.id} submitted by {actor.actor_id}")
            return result

    async def resolve_report(self, actor: ActorContext, report_id: str) -> OperationResult:
        """Moderation: mark a pending report resolved."""
        with tracer.start_as_current_span("coordination.resolve_report") as span:
            span.set_attribute("actor.role", actor.role)

            denied = self._authorize(actor, Action.RESOLVE_REPORT)
            if denied:
                return denied

            report, failure = await self._load(REPORTS, Report, report_id)
            if failure:
                return failure

            result = lifecycle.resolve_report(report, self.clock())
            outcome = await self._persist_transition(
                REPORTS, report_id, result,
                Failure(FailureKind.INVALID_TRANSITION, "Report was already resolved")
            )
            if outcome.success:
                logger.info(f"Report {report_id} resolved by {actor.actor_id}")
            return outcome

    # Resource requests

    async def submit_resource_request(
        self,
        actor: ActorContext,
        request_type: str,
        description: str,
        location: Optional[str] = None,
        coordinates: CoordinatesInput = None
    ) -> OperationResult:
        """Submit a resource request; its location must resolve first."""
        with tracer.start_as_current_span("coordination.submit_resource_request") as span:
            span.set_attribute("actor.role", actor.role)

            denied = self._authorize(actor, Action.CREATE_RESOURCE_REQUEST)
            if denied:
                return denied

            try:
                coordinates = _coerce_coordinates(coordinates)
            except (ValidationError, TypeError, ValueError) as e:
                return self._bad_coordinates(e)

            resolution = await self.resolver.resolve(location, coordinates)
            if not resolution.success:
                return OperationResult.failed(resolution.failure)

            try:
                request = lifecycle.new_resource_request(
                    actor, request_type, description, location, resolution.coordinates, self.clock()
                )
            except ValidationError as e:
                return OperationResult.failed(invalid_input(e))

            result = await self._create(RESOURCE_REQUESTS, request)
            if result.success:
                logger.info(f"Resource request {result.entity.id} submitted by {actor.actor_id}")
            return result

    async def fulfill_resource_request(self, actor: ActorContext, request_id: str) -> OperationResult:
        """Mark a pending request fulfilled by the acting user."""
        with tracer.start_as_current_span("coordination.fulfill_resource_request") as span:
            span.set_attributes({"actor.role": actor.role, "entity.id": request_id})

            request, failure = await self._load(RESOURCE_REQUESTS, ResourceRequest, request_id)
            if failure:
                return failure

            denied = self._authorize(actor, Action.FULFILL_RESOURCE_REQUEST, request)
            if denied:
                return denied

            result = lifecycle.fulfill_request(request, actor.actor_id, self.clock())
            outcome = await self._persist_transition(
                RESOURCE_REQUESTS, request_id, result,
                Failure(FailureKind.ALREADY_FULFILLED, "This request has already been fulfilled")
            )
            if outcome.success:
                logger.info(f"Resource request {request_id} fulfilled by {actor.actor_id}")
            return outcome

    # Broadcasts

    async def send_broadcast(self, actor: ActorContext, title: str, message: str) -> OperationResult:
        """Publish a broadcast stamped with the sender's role."""
        with tracer.start_as_current_span("coordination.send_broadcast") as span:
            span.set_attribute("actor.role", actor.role)

            denied = self._authorize(actor, Action.CREATE_BROADCAST)
            if denied:
                return denied

            try:
                broadcast = lifecycle.new_broadcast(actor, title, message, self.clock())
            except ValidationError as e:
                return OperationResult.failed(invalid_input(e))

            result = await self._create(BROADCASTS, broadcast)
            if result.success:
                logger.info(f"Broadcast {result.entity.id} sent by {actor.role} {actor.actor_id}")
            return result

    # Volunteer tasks

    async def create_volunteer_task(
        self,
        actor: ActorContext,
        title: str,
        description: str,
        location: str,
        required_skills: Any = "",
        priority: str = "medium"
    ) -> OperationResult:
        """Create a pending task at a geocoded location."""
        with tracer.start_as_current_span("coordination.create_volunteer_task") as span:
            span.set_attribute("actor.role", actor.role)

            denied = self._authorize(actor, Action.CREATE_VOLUNTEER_TASK)
            if denied:
                return denied

            resolution = await self.resolver.resolve(location)
            if not resolution.success:
                return OperationResult.failed(resolution.failure)

            try:
                task = lifecycle.new_volunteer_task(
                    actor, title, description, location, resolution.coordinates,
                    required_skills, priority, self.clock()
                )
            except ValidationError as e:
                return OperationResult.failed(invalid_input(e))

            result = await self._create(VOLUNTEER_TASKS, task)
            if result.success:
                logger.info(f"Volunteer task {result.entity.id} created by {actor.actor_id}")
            return result

    async def accept_volunteer_task(self, actor: ActorContext, task_id: str) -> OperationResult:
        """Assign a pending task to the accepting volunteer."""
        with tracer.start_as_current_span("coordination.accept_volunteer_task") as span:
            span.set_attributes({"actor.role": actor.role, "entity.id": task_id})

            denied = self._authorize(actor, Action.ACCEPT_VOLUNTEER_TASK)
            if denied:
                return denied

            task, failure = await self._load(VOLUNTEER_TASKS, VolunteerTask, task_id)
            if failure:
                return failure

            result = lifecycle.accept_task(task, actor.actor_id, self.clock())
            outcome = await self._persist_transition(
                VOLUNTEER_TASKS, task_id, result,
                Failure(FailureKind.INVALID_TRANSITION, "Task was accepted by another volunteer")
            )
            if outcome.success:
                logger.info(f"Volunteer task {task_id} accepted by {actor.actor_id}")
            return outcome

    async def complete_volunteer_task(self, actor: ActorContext, task_id: str) -> OperationResult:
        """Complete a task; admins and NGOs may also close pending tasks."""
        with tracer.start_as_current_span("coordination.complete_volunteer_task") as span:
            span.set_attributes({"actor.role": actor.role, "entity.id": task_id})

            task, failure = await self._load(VOLUNTEER_TASKS, VolunteerTask, task_id)
            if failure:
                return failure

            denied = self._authorize(actor, Action.COMPLETE_VOLUNTEER_TASK, task)
            if denied:
                return denied

            override = actor.role in COORDINATOR_ROLES
            result = lifecycle.complete_task(task, self.clock(), override=override)
            outcome = await self._persist_transition(
                VOLUNTEER_TASKS, task_id, result,
                Failure(FailureKind.INVALID_TRANSITION, "Task changed while completing it; reload and retry")
            )
            if outcome.success:
                logger.info(f"Volunteer task {task_id} completed by {actor.actor_id}")
            return outcome

    def _bad_coordinates(self, error: Exception) -> OperationResult:
        if isinstance(error, ValidationError):
            return OperationResult.failed(invalid_input(error))
        return OperationResult.failed(
            Failure(FailureKind.INVALID_INPUT, "Invalid input - coordinates must be a latitude/longitude pair")
        )

    # Live views

    def watch_broadcasts(self, limit: Optional[int] = None) -> Subscription:
        """Broadcasts, newest first; the dashboard uses ``limit=3``."""
        return self.channel.subscribe(BROADCASTS, limit=limit)

    def watch_reports(self, actor: Optional[ActorContext] = None) -> Subscription:
        """All reports, or only the actor's own reports."""
        filters = {"userId": actor.actor_id} if actor is not None else None
        return self.channel.subscribe(REPORTS, filters=filters)

    def watch_resource_requests(self, status: Optional[str] = None) -> Subscription:
        filters = {"status": getattr(status, "value", status)} if status else None
        return self.channel.subscribe(RESOURCE_REQUESTS, filters=filters)

    def watch_volunteer_tasks(self, status: Optional[str] = None) -> Subscription:
        filters = {"status": getattr(status, "value", status)} if status else None
        return self.channel.subscribe(VOLUNTEER_TASKS, filters=filters)

    async def close(self) -> None:
        """Release subscriptions and collaborators."""
        self.channel.close()
        await self.store.close()
        await self.resolver.geocoder.close()


def create_facade(config: Optional[EngineConfig] = None) -> CoordinationFacade:
    """
    Build a facade wired from configuration.

    Args:
        config: Engine configuration, read from the environment when omitted

    Returns:
        CoordinationFacade with store, geocoder, resolver and sync channel
    """
    config = config or EngineConfig.from_env()

    if config.store_backend == STORE_MONGODB:
        from .mongodb import MongoDocumentStore
        store = MongoDocumentStore(
            connection_string=config.mongodb_uri,
            database_name=config.mongodb_database,
            collection_prefix=config.app_id
        )
    else:
        store = InMemoryDocumentStore()

    geocoder = GeocodingClient(
        api_key=config.google_maps_api_key,
        base_url=config.geocoding_url,
        timeout=config.geocoding_timeout_seconds
    )

    logger.info(f"Coordination facade created ({config.store_backend} store, app {config.app_id})")
    return CoordinationFacade(store, LocationResolver(geocoder), SyncChannel(store))
