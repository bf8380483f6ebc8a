# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Models package - Pydantic entities and enumerations for ReliefSync.
"""

# Base models
from .base import BaseEntity, generate_object_id, utcnow

# Enumerations
from .enums import (
    Action,
    ActorRole,
    EntityKind,
    ReportType,
    ReportStatus,
    RequestType,
    RequestStatus,
    TaskPriority,
    TaskStatus,
)

# Core entities
from .entities import (
    CURRENT_LOCATION_LABEL,
    ActorContext,
    Coordinates,
    Report,
    ResourceRequest,
    VolunteerTask,
    Broadcast,
    parse_required_skills,
)

__all__ = [
    # Base models
    "BaseEntity",
    "generate_object_id",
    "utcnow",

    # Enumerations
    "Action",
    "ActorRole",
    "EntityKind",
    "ReportType",
    "ReportStatus",
    "RequestType",
    "RequestStatus",
    "TaskPriority",
    "TaskStatus",

    # Core entities
    "CURRENT_LOCATION_LABEL",
    "ActorContext",
    "Coordinates",
    "Report",
    "ResourceRequest",
    "VolunteerTask",
    "Broadcast",
    "parse_required_skills",
]
