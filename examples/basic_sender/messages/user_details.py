"""User details message, keyed by the patron entity."""

from datetime import date

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from stellanow_sdk import EntityType, StellaNowMessageBase


class PhoneNumber(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    country_code: int
    number: int


class UserDetailsMessage(StellaNowMessageBase):
    user_id: str
    first_name: str
    last_name: str
    gender: str
    dob: date
    email: str
    phone_number: PhoneNumber

    @classmethod
    def for_patron(cls, patron_id: str, **fields) -> "UserDetailsMessage":
        return cls(
            event_type_definition_id="user_details",
            entity_type_ids=[EntityType(entity_type_definition_id="patron", entity_id=patron_id)],
            user_id=patron_id,
            **fields,
        )
