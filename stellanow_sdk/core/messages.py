"""Message models for the StellaNow SDK.

Every model here is a frozen pydantic model. Serialization goes through
``model_dump`` / ``model_dump_json`` with camelCase aliases, which is the wire
format the ingestion endpoint expects.
"""

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator
from pydantic.alias_generators import to_camel

MODEL_CONFIG = ConfigDict(
    frozen=True,
    populate_by_name=True,
    alias_generator=to_camel,
)


def format_origin_date(value: datetime) -> str:
    """Format a datetime as UTC ISO-8601 with microsecond precision, e.g.
    ``2025-01-01T12:00:00.123456Z``."""
    if value.tzinfo is not None:
        value = value.astimezone(UTC)
    return value.strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class EntityType(BaseModel):
    """Reference to the entity a message is about."""

    model_config = MODEL_CONFIG

    entity_type_definition_id: str
    entity_id: str

    @field_validator("entity_type_definition_id", "entity_id")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("entity reference ids must not be empty")
        return v


class StellaNowMessageBase(BaseModel):
    """Base class for application messages.

    Subclasses declare the payload as ordinary pydantic fields. The event type
    and the entity references are routing data and are excluded from the
    payload.

    Example::

        class UserLoginMessage(StellaNowMessageBase):
            user_id: str
            timestamp: datetime

        UserLoginMessage(
            event_type_definition_id="user_login",
            entity_type_ids=[EntityType(entity_type_definition_id="user", entity_id="u1")],
            user_id="u1",
            timestamp=datetime.now(UTC),
        )
    """

    model_config = MODEL_CONFIG

    event_type_definition_id: str = Field(exclude=True)
    entity_type_ids: tuple[EntityType, ...] = Field(default=(), exclude=True)

    @field_validator("event_type_definition_id")
    @classmethod
    def validate_event_type(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("event_type_definition_id must not be empty")
        return v

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON-compatible application payload."""
        return self.model_dump(mode="json", by_alias=True)

    def to_payload_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class MessageMetadata(BaseModel):
    """Tracking metadata generated when a message is wrapped."""

    model_config = MODEL_CONFIG

    message_id: str
    message_origin_date_utc: datetime = Field(alias="messageOriginDateUTC")
    event_type_definition_id: str
    entity_type_ids: tuple[EntityType, ...]

    @field_serializer("message_origin_date_utc")
    def serialize_origin_date(self, value: datetime) -> str:
        return format_origin_date(value)


class StellaNowMessageWrapper(BaseModel):
    """A message plus its metadata, with the payload pre-serialized to a string.

    The message id is assigned once, when the wrapper is created, and is never
    reassigned.
    """

    model_config = MODEL_CONFIG

    metadata: MessageMetadata
    payload: str

    @classmethod
    def create(
        cls,
        event_type_definition_id: str,
        entity_type_ids: list[EntityType] | tuple[EntityType, ...],
        payload: str,
    ) -> "StellaNowMessageWrapper":
        metadata = MessageMetadata(
            message_id=str(uuid4()),
            message_origin_date_utc=datetime.now(UTC),
            event_type_definition_id=event_type_definition_id,
            entity_type_ids=tuple(entity_type_ids),
        )
        return cls(metadata=metadata, payload=payload)

    @classmethod
    def from_message(cls, message: StellaNowMessageBase) -> "StellaNowMessageWrapper":
        return cls.create(
            message.event_type_definition_id,
            message.entity_type_ids,
            message.to_payload_json(),
        )

    @property
    def message_id(self) -> str:
        return self.metadata.message_id
