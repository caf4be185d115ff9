"""Shared schema base — camelCase on the wire, snake_case in Python."""

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True

    def to_json_dict(self) -> dict:
        """Dump with wire (camelCase) keys, dropping unset optionals."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
