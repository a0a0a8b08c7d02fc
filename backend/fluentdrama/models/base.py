"""Shared base model for JSON exchanged with the web client (camelCase keys)."""
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Snake-case attributes in Python, camelCase keys on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        """Dump as JSON-compatible dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)
