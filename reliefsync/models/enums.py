# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Enumeration types for the ReliefSync coordination engine.
"""

from enum import Enum


class ActorRole(str, Enum):
    """Client-declared role of the acting user."""
    VICTIM = "victim"
    VOLUNTEER = "volunteer"
    NGO = "ngo"
    ADMIN = "admin"


class EntityKind(str, Enum):
    """Entity kinds handled by the engine."""
    REPORT = "report"
    RESOURCE_REQUEST = "resource_request"
    VOLUNTEER_TASK = "volunteer_task"
    BROADCAST = "broadcast"


class ReportType(str, Enum):
    """Incident report categories."""
    MISSING = "missing"
    INJURY = "injury"
    DAMAGE = "damage"
    OTHER = "other"


class ReportStatus(str, Enum):
    """Incident report status."""
    PENDING = "pending"
    RESOLVED = "resolved"


class RequestType(str, Enum):
    """Kinds of aid a resource request may ask for."""
    FOOD = "food"
    WATER = "water"
    SHELTER = "shelter"
    MEDICAL = "medical"
    CLOTHING = "clothing"
    OTHER = "other"


class RequestStatus(str, Enum):
    """Resource request status."""
    PENDING = "pending"
    FULFILLED = "fulfilled"


class TaskPriority(str, Enum):
    """Volunteer task priority levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class TaskStatus(str, Enum):
    """Volunteer task workflow status."""
    PENDING = "pending"
    ASSIGNED = "assigned"
    COMPLETED = "completed"


class Action(str, Enum):
    """Operations guarded by the authorization gate."""
    CREATE_REPORT = "create_report"
    RESOLVE_REPORT = "resolve_report"
    CREATE_RESOURCE_REQUEST = "create_resource_request"
    FULFILL_RESOURCE_REQUEST = "fulfill_resource_request"
    CREATE_BROADCAST = "create_broadcast"
    CREATE_VOLUNTEER_TASK = "create_volunteer_task"
    ACCEPT_VOLUNTEER_TASK = "accept_volunteer_task"
    COMPLETE_VOLUNTEER_TASK = "complete_volunteer_task"
