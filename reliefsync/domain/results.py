# SPDX-License-Identifier: Apache-2.0

"""
Result and failure types shared by the domain and service layers.

Business failures are returned as values, never raised, so that every
operation either succeeds with an entity or fails with an explanation the
caller can act on.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from ..models.entities import Coordinates


class FailureKind(str, Enum):
    """Closed taxonomy of operation failures."""
    # Location resolution
    MISSING_LOCATION = "missing_location"
    NO_MATCH = "no_match"
    PROVIDER_REJECTED = "provider_rejected"
    UNREACHABLE = "unreachable"
    # Authorization
    DENIED = "denied"
    # Lifecycle
    NOT_FOUND = "not_found"
    INVALID_TRANSITION = "invalid_transition"
    ALREADY_FULFILLED = "already_fulfilled"
    INVALID_INPUT = "invalid_input"
    # Collaborators
    STORE_UNAVAILABLE = "store_unavailable"


class RejectionDetail(str, Enum):
    """Why the geocoding provider rejected a request."""
    QUOTA = "quota"
    DENIED = "denied"


@dataclass(frozen=True)
class Failure:
    """A failed operation with a human-readable explanation."""
    kind: FailureKind
    message: str
    detail: Optional[str] = None

    def __str__(self) -> str:
        return self.message


@dataclass
class ResolutionResult:
    """Result of resolving a location into coordinates."""
    success: bool
    coordinates: Optional[Coordinates] = None
    failure: Optional[Failure] = None

    @classmethod
    def resolved(cls, coordinates: Coordinates) -> "ResolutionResult":
        return cls(success=True, coordinates=coordinates)

    @classmethod
    def failed(cls, kind: FailureKind, message: str, detail: Optional[str] = None) -> "ResolutionResult":
        return cls(success=False, failure=Failure(kind, message, detail))


@dataclass
class TransitionResult:
    """
    Result of applying a lifecycle transition to an entity snapshot.

    ``changes`` holds the attribute-keyed field group to persist in one update;
    ``expected`` holds the attribute values the stored document must still have
    for the update to apply.
    """
    success: bool
    entity: Any = None
    changes: Dict[str, Any] = field(default_factory=dict)
    expected: Dict[str, Any] = field(default_factory=dict)
    failure: Optional[Failure] = None

    @classmethod
    def failed(cls, kind: FailureKind, message: str) -> "TransitionResult":
        return cls(success=False, failure=Failure(kind, message))


@dataclass
class OperationResult:
    """Result returned by every coordination operation."""
    success: bool
    entity: Any = None
    failure: Optional[Failure] = None

    @classmethod
    def ok(cls, entity: Any) -> "OperationResult":
        return cls(success=True, entity=entity)

    @classmethod
    def failed(cls, failure: Failure) -> "OperationResult":
        return cls(success=False, failure=failure)

    @property
    def kind(self) -> Optional[FailureKind]:
        return self.failure.kind if self.failure else None
