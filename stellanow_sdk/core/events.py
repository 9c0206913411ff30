"""Event envelope: routing key plus wrapped message."""

from typing import TYPE_CHECKING

from pydantic import BaseModel

from stellanow_sdk.core.exceptions import EntityReferencesEmptyError
from stellanow_sdk.core.messages import MODEL_CONFIG, StellaNowMessageWrapper

if TYPE_CHECKING:
    from stellanow_sdk.config import ProjectInfo


class EventKey(BaseModel):
    """Routing key of an event.

    ``event_type_definition_id`` holds the entity-type id of the primary
    (first) entity reference.
    """

    model_config = MODEL_CONFIG

    organization_id: str
    project_id: str
    entity_id: str
    event_type_definition_id: str


class StellaNowEventWrapper(BaseModel):
    """The unit stored in the delivery queue and published to the broker."""

    model_config = MODEL_CONFIG

    key: EventKey
    value: StellaNowMessageWrapper

    @property
    def message_id(self) -> str:
        return self.value.metadata.message_id

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_wrapper(
        cls, project_info: "ProjectInfo", value: StellaNowMessageWrapper
    ) -> "StellaNowEventWrapper":
        """Build an event keyed by the first entity reference of ``value``.

        Raises:
            EntityReferencesEmptyError: If the wrapper has no entity references.
        """
        entity_refs = value.metadata.entity_type_ids
        if not entity_refs:
            raise EntityReferencesEmptyError()

        primary = entity_refs[0]
        key = EventKey(
            organization_id=project_info.organization_id,
            project_id=project_info.project_id,
            entity_id=primary.entity_id,
            event_type_definition_id=primary.entity_type_definition_id,
        )
        return cls(key=key, value=value)
