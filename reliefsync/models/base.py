# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Base entity model with document (de)serialization helpers.

Entities use snake_case attributes in Python and camelCase keys in stored
documents, mirroring the field names shared with the clients.
"""

from datetime import datetime, timezone
from typing import Annotated, Any, Dict, Optional
from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from bson import ObjectId


def generate_object_id() -> str:
    """Generate a new MongoDB ObjectId as string."""
    return str(ObjectId())


def utcnow() -> datetime:
    """Current instant as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# Timestamps written outside the engine may lack an offset
UtcDateTime = Annotated[datetime, AfterValidator(ensure_utc)]


class BaseEntity(BaseModel):
    """Base entity with the store-assigned identifier and document helpers."""

    model_config = ConfigDict(
        # Document keys are camelCase, attributes snake_case
        alias_generator=to_camel,
        populate_by_name=True,
        # Use enum values instead of enum objects
        use_enum_values=True,
        validate_assignment=True,
        # Stored documents may carry bookkeeping keys we do not model
        extra="ignore",
    )

    id: Optional[str] = Field(None, description="Store-assigned identifier")
    schema_version: int = Field(default=1, description="Schema version for migrations")

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "BaseEntity":
        """Parse a stored document (camelCase keys) into an entity."""
        return cls.model_validate(document)

    def to_document(self) -> Dict[str, Any]:
        """Serialize to a store document, without the identifier."""
        return self.model_dump(by_alias=True, exclude={"id"})

    def document_fields(self, changes: Dict[str, Any]) -> Dict[str, Any]:
        """Translate attribute-keyed changes into document-keyed fields."""
        fields = {}
        for name, value in changes.items():
            field = type(self).model_fields[name]
            fields[field.alias or name] = getattr(value, "value", value)
        return fields

    def with_changes(self, changes: Dict[str, Any]) -> "BaseEntity":
        """Return a validated copy with the given attribute changes applied."""
        data = self.model_dump()
        data.update(changes)
        return type(self).model_validate(data)
