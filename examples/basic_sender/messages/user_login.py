"""User login message, keyed by the patron entity."""

from datetime import datetime

from stellanow_sdk import EntityType, StellaNowMessageBase


class UserLoginMessage(StellaNowMessageBase):
    user_id: str
    timestamp: datetime
    user_group_id: str | None = None

    @classmethod
    def for_patron(cls, patron_id: str, **fields) -> "UserLoginMessage":
        return cls(
            event_type_definition_id="user_login",
            entity_type_ids=[EntityType(entity_type_definition_id="patron", entity_id=patron_id)],
            user_id=patron_id,
            **fields,
        )
