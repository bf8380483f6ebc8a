# SPDX-License-Identifier: Apache-2.0

"""
Entity lifecycle domain logic.

This module contains pure functions that build new entities and apply status
transitions. Every transition takes the current snapshot and "now" and returns
a TransitionResult carrying the new snapshot and the single field group to
persist, or a failure. Nothing here touches the store or the clock.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union
from dataclasses import dataclass

from ..models.entities import (
    CURRENT_LOCATION_LABEL,
    ActorContext,
    Broadcast,
    Coordinates,
    Report,
    ResourceRequest,
    VolunteerTask,
)
from ..models.enums import EntityKind, ReportStatus, RequestStatus, TaskStatus
from .results import FailureKind, TransitionResult


@dataclass
class ValidationResult:
    """Result of a status transition check."""
    is_valid: bool
    errors: List[str]


# Legal status edges per entity kind; broadcasts have no status
VALID_TRANSITIONS: Dict[str, Dict[str, List[str]]] = {
    EntityKind.REPORT.value: {
        ReportStatus.PENDING.value: [ReportStatus.RESOLVED.value],
        ReportStatus.RESOLVED.value: [],  # Terminal state
    },
    EntityKind.RESOURCE_REQUEST.value: {
        RequestStatus.PENDING.value: [RequestStatus.FULFILLED.value],
        RequestStatus.FULFILLED.value: [],  # Terminal state
    },
    EntityKind.VOLUNTEER_TASK.value: {
        TaskStatus.PENDING.value: [TaskStatus.ASSIGNED.value],
        TaskStatus.ASSIGNED.value: [TaskStatus.COMPLETED.value],
        TaskStatus.COMPLETED.value: [],  # Terminal state
    },
    EntityKind.BROADCAST.value: {},
}

# Edges only reachable through the coordinator override
OVERRIDE_TRANSITIONS: Dict[str, Dict[str, List[str]]] = {
    EntityKind.VOLUNTEER_TASK.value: {
        TaskStatus.PENDING.value: [TaskStatus.COMPLETED.value],
    },
}


def validate_status_transition(
    kind: Union[EntityKind, str],
    current_status: str,
    new_status: str,
    override: bool = False
) -> ValidationResult:
    """
    Validate a status transition for an entity kind.

    Args:
        kind: Entity kind
        current_status: Current status value
        new_status: Desired status value
        override: Whether the coordinator override applies

    Returns:
        ValidationResult with validation status and errors
    """
    kind = getattr(kind, "value", kind)
    current_status = getattr(current_status, "value", current_status)
    new_status = getattr(new_status, "value", new_status)

    allowed = list(VALID_TRANSITIONS.get(kind, {}).get(current_status, []))
    if override:
        allowed.extend(OVERRIDE_TRANSITIONS.get(kind, {}).get(current_status, []))

    errors = []
    if new_status not in allowed:
        errors.append(f"Invalid status transition from {current_status} to {new_status}")

    return ValidationResult(is_valid=not errors, errors=errors)


# Construction

def new_report(
    actor: ActorContext,
    report_type: str,
    details: str,
    location: Optional[str],
    coordinates: Optional[Coordinates],
    now: datetime
) -> Report:
    """
    Build a pending report.

    Device-supplied coordinates without text are labelled as the reporter's
    current location.
    """
    if coordinates is not None and not (location and location.strip()):
        location = CURRENT_LOCATION_LABEL

    return Report(
        user_id=actor.actor_id,
        report_type=report_type,
        details=details,
        location=location.strip() if location else None,
        latitude=coordinates.latitude if coordinates else None,
        longitude=coordinates.longitude if coordinates else None,
        status=ReportStatus.PENDING,
        timestamp=now,
    )


def new_resource_request(
    actor: ActorContext,
    request_type: str,
    description: str,
    location: Optional[str],
    coordinates: Coordinates,
    now: datetime
) -> ResourceRequest:
    """Build a pending resource request at resolved coordinates."""
    if not (location and location.strip()):
        location = CURRENT_LOCATION_LABEL

    return ResourceRequest(
        user_id=actor.actor_id,
        request_type=request_type,
        description=description,
        location=location,
        latitude=coordinates.latitude,
        longitude=coordinates.longitude,
        status=RequestStatus.PENDING,
        timestamp=now,
    )


def new_volunteer_task(
    actor: ActorContext,
    title: str,
    description: str,
    location: str,
    coordinates: Coordinates,
    required_skills: Any,
    priority: str,
    now: datetime
) -> VolunteerTask:
    """Build a pending, unassigned volunteer task."""
    return VolunteerTask(
        created_by=actor.actor_id,
        user_role=actor.role,
        title=title,
        description=description,
        location=location,
        latitude=coordinates.latitude,
        longitude=coordinates.longitude,
        required_skills=required_skills,
        priority=priority,
        status=TaskStatus.PENDING,
        created_at=now,
    )


def new_broadcast(actor: ActorContext, title: str, message: str, now: datetime) -> Broadcast:
    """Build a broadcast stamped with the sender's current role."""
    return Broadcast(
        user_id=actor.actor_id,
        user_role=actor.role,
        title=title,
        message=message,
        timestamp=now,
    )


# Transitions

def _apply(entity: Any, changes: Dict[str, Any], expected_status: str) -> TransitionResult:
    return TransitionResult(
        success=True,
        entity=entity.with_changes(changes),
        changes=changes,
        expected={"status": expected_status},
    )


def resolve_report(report: Report, now: datetime) -> TransitionResult:
    """Mark a report resolved; reachable through moderation only."""
    validation = validate_status_transition(EntityKind.REPORT, report.status, ReportStatus.RESOLVED)
    if not validation.is_valid:
        return TransitionResult.failed(
            FailureKind.INVALID_TRANSITION,
            f"Report cannot be resolved (current status: {report.status})"
        )

    changes = {"status": ReportStatus.RESOLVED.value, "resolved_at": now}
    return _apply(report, changes, report.status)


def fulfill_request(request: ResourceRequest, actor_id: str, now: datetime) -> TransitionResult:
    """
    Fulfill a pending resource request.

    A second attempt is an error, not a no-op.
    """
    if not request.can_fulfill():
        return TransitionResult.failed(
            FailureKind.ALREADY_FULFILLED,
            "This request has already been fulfilled"
        )

    changes = {
        "status": RequestStatus.FULFILLED.value,
        "fulfilled_by": actor_id,
        "fulfilled_at": now,
    }
    return _apply(request, changes, request.status)


def accept_task(task: VolunteerTask, actor_id: str, now: datetime) -> TransitionResult:
    """Assign a pending task to the accepting volunteer."""
    if not task.can_accept():
        return TransitionResult.failed(
            FailureKind.INVALID_TRANSITION,
            f"Task cannot be accepted (current status: {task.status})"
        )

    changes = {
        "status": TaskStatus.ASSIGNED.value,
        "assigned_to": actor_id,
        "assigned_at": now,
    }
    return _apply(task, changes, task.status)


def complete_task(task: VolunteerTask, now: datetime, override: bool = False) -> TransitionResult:
    """
    Complete an assigned task.

    With ``override`` (admins and NGOs) a still-pending task may be completed
    directly. Completed tasks never transition again.
    """
    validation = validate_status_transition(
        EntityKind.VOLUNTEER_TASK, task.status, TaskStatus.COMPLETED, override=override
    )
    if not validation.is_valid:
        if task.status == TaskStatus.COMPLETED:
            message = "Task is already completed"
        else:
            message = "Task must be accepted by a volunteer before it can be completed"
        return TransitionResult.failed(FailureKind.INVALID_TRANSITION, message)

    changes = {"status": TaskStatus.COMPLETED.value, "completed_at": now}
    return _apply(task, changes, task.status)
