# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Core entity models for the ReliefSync coordination engine.
"""

from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from .base import BaseEntity, UtcDateTime, utcnow
from .enums import (
    ActorRole,
    ReportType,
    ReportStatus,
    RequestType,
    RequestStatus,
    TaskPriority,
    TaskStatus,
)

CURRENT_LOCATION_LABEL = "Your Current Location"


def parse_required_skills(value: Any) -> List[str]:
    """
    Parse required skills from comma-separated text or a list.

    Empty tokens are dropped, surrounding whitespace is stripped and the first
    occurrence of a repeated skill wins, so input order is preserved.
    """
    if value is None:
        return []
    if isinstance(value, str):
        tokens = value.split(",")
    else:
        tokens = list(value)

    skills: List[str] = []
    for token in tokens:
        skill = str(token).strip()
        if skill and skill not in skills:
            skills.append(skill)
    return skills


class Coordinates(BaseModel):
    """A resolved geographic position."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., ge=-90, le=90, description="Latitude in degrees")
    longitude: float = Field(..., ge=-180, le=180, description="Longitude in degrees")


class ActorContext(BaseModel):
    """Identity and declared role of the actor performing an operation."""

    model_config = ConfigDict(use_enum_values=True, frozen=True)

    actor_id: str = Field(..., min_length=1, description="Opaque actor identifier")
    role: ActorRole = Field(..., description="Client-declared role")


class Report(BaseEntity):
    """Incident report: missing person, injury, damage or other."""

    user_id: str = Field(..., min_length=1, description="Reporting actor")
    report_type: ReportType = Field(..., description="Incident category")
    details: str = Field(..., min_length=1, max_length=5000, description="Incident details")
    location: Optional[str] = Field(None, description="Location as entered")
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    status: ReportStatus = Field(default=ReportStatus.PENDING, description="Moderation status")
    resolved_at: Optional[UtcDateTime] = Field(None, description="Resolution timestamp")
    timestamp: UtcDateTime = Field(default_factory=utcnow, description="Creation timestamp")

    @field_validator('details')
    @classmethod
    def validate_details(cls, v):
        """Validate report details."""
        if not v.strip():
            raise ValueError('Report details cannot be empty')
        return v.strip()

    @model_validator(mode='after')
    def validate_report_fields(self):
        """Latitude and longitude travel together; resolved_at marks resolution."""
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError('latitude and longitude must both be present or both be absent')
        if self.status == ReportStatus.RESOLVED and self.resolved_at is None:
            raise ValueError('resolved_at is required when status is resolved')
        if self.status != ReportStatus.RESOLVED and self.resolved_at is not None:
            raise ValueError('resolved_at is only set on resolved reports')
        return self

    @property
    def coordinates(self) -> Optional[Coordinates]:
        if self.latitude is None:
            return None
        return Coordinates(latitude=self.latitude, longitude=self.longitude)


class ResourceRequest(BaseEntity):
    """Request for food, water, shelter or other aid at a resolved location."""

    user_id: str = Field(..., min_length=1, description="Requesting actor")
    request_type: RequestType = Field(..., description="Kind of aid requested")
    description: str = Field(..., min_length=1, max_length=5000, description="What is needed")
    location: str = Field(..., min_length=1, description="Location as entered")
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    status: RequestStatus = Field(default=RequestStatus.PENDING, description="Fulfillment status")
    fulfilled_by: Optional[str] = Field(None, description="Actor who fulfilled the request")
    fulfilled_at: Optional[UtcDateTime] = Field(None, description="Fulfillment timestamp")
    timestamp: UtcDateTime = Field(default_factory=utcnow, description="Creation timestamp")

    @field_validator('description', 'location')
    @classmethod
    def validate_text(cls, v):
        """Reject blank text fields."""
        if not v.strip():
            raise ValueError('Field cannot be empty')
        return v.strip()

    @model_validator(mode='after')
    def validate_fulfillment(self):
        """Fulfillment fields are set exactly when the request is fulfilled."""
        fulfilled = self.status == RequestStatus.FULFILLED
        if fulfilled and (not self.fulfilled_by or self.fulfilled_at is None):
            raise ValueError('fulfilled_by and fulfilled_at are required when status is fulfilled')
        if not fulfilled and (self.fulfilled_by or self.fulfilled_at is not None):
            raise ValueError('Pending requests cannot carry fulfillment fields')
        return self

    def can_fulfill(self) -> bool:
        """Check if the request is still open."""
        return self.status == RequestStatus.PENDING


class VolunteerTask(BaseEntity):
    """Task published by an NGO or admin for volunteers to pick up."""

    created_by: str = Field(..., min_length=1, description="Creating actor")
    user_role: ActorRole = Field(..., description="Creator role at creation time")
    title: str = Field(..., min_length=1, max_length=200, description="Task title")
    description: str = Field(..., min_length=1, max_length=5000, description="Task description")
    location: str = Field(..., min_length=1, description="Location as entered")
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    required_skills: List[str] = Field(default_factory=list, description="Skills needed")
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM, description="Task priority")
    status: TaskStatus = Field(default=TaskStatus.PENDING, description="Workflow status")
    assigned_to: Optional[str] = Field(None, description="Volunteer who accepted the task")
    assigned_at: Optional[UtcDateTime] = Field(None, description="Acceptance timestamp")
    completed_at: Optional[UtcDateTime] = Field(None, description="Completion timestamp")
    created_at: UtcDateTime = Field(default_factory=utcnow, description="Creation timestamp")

    @field_validator('title', 'description', 'location')
    @classmethod
    def validate_text(cls, v):
        """Reject blank text fields."""
        if not v.strip():
            raise ValueError('Field cannot be empty')
        return v.strip()

    @field_validator('required_skills', mode='before')
    @classmethod
    def validate_required_skills(cls, v):
        return parse_required_skills(v)

    @model_validator(mode='after')
    def validate_assignment_fields(self):
        """Validate status-dependent fields."""
        if (self.assigned_to is None) != (self.assigned_at is None):
            raise ValueError('assigned_to and assigned_at must be set together')

        if self.status == TaskStatus.ASSIGNED and not self.assigned_to:
            raise ValueError('assigned_to is required when status is assigned')

        if self.status == TaskStatus.COMPLETED and self.completed_at is None:
            raise ValueError('completed_at is required when status is completed')

        if self.status != TaskStatus.COMPLETED and self.completed_at is not None:
            raise ValueError('completed_at is only set on completed tasks')

        return self

    def can_accept(self) -> bool:
        """Check if a volunteer can still pick up the task."""
        return self.status == TaskStatus.PENDING

    def is_assigned_to(self, actor_id: str) -> bool:
        return self.assigned_to is not None and self.assigned_to == actor_id


class Broadcast(BaseEntity):
    """Append-only public announcement from an NGO or admin."""

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(..., min_length=1, description="Sending actor")
    user_role: ActorRole = Field(..., description="Sender role at send time")
    title: str = Field(..., min_length=1, max_length=200, description="Broadcast title")
    message: str = Field(..., min_length=1, max_length=5000, description="Broadcast body")
    timestamp: UtcDateTime = Field(default_factory=utcnow, description="Send timestamp")

    @field_validator('title', 'message')
    @classmethod
    def validate_text(cls, v):
        """Reject blank text fields."""
        if not v.strip():
            raise ValueError('Field cannot be empty')
        return v.strip()
