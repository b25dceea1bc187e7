"""
Base Schema Classes for Pydantic Models

This module provides base classes that handle common patterns like camelCase
field aliases and ORM reading, ensuring consistency across all schemas.

RULE: All response schemas that use `from_attributes=True` MUST inherit from BaseResponseSchema.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class BaseResponseSchema(BaseModel):
    """
    Base class for all response schemas that read from ORM models.

    Features:
    - Enables from_attributes for ORM compatibility
    - Serializes field names as camelCase (saleClosed, partnerId, ...)

    Usage:
        class MaterialResponse(BaseResponseSchema):
            id: UUID
            title: str
    """
    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        # Allow population by field name or alias
        populate_by_name=True,
    )


class BaseCreateSchema(BaseModel):
    """
    Base class for create/input schemas.

    Accepts both camelCase (as sent by the web client) and snake_case keys.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        # Allow extra fields to be ignored (forward compatibility)
        extra='ignore',
    )


class BaseUpdateSchema(BaseCreateSchema):
    """
    Base class for update/patch schemas.

    All fields are optional; use model_dump(exclude_unset=True) for partial updates.
    """
    pass


class MessageResponse(BaseModel):
    """Plain `{message}` acknowledgement."""
    message: str

