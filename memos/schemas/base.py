"""
Base Schemas.

Shared pydantic configuration for persisted entities. Field names are
snake_case in Python and camelCase on disk and on the wire, matching the
snapshot format written by earlier versions of the app.

Timestamps are stored naive and in UTC. ``UtcDateTime`` fields accept
offset-aware input and normalize it on validation and on assignment.
"""

from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from memos.core.utils import to_naive_utc

UtcDateTime = Annotated[datetime, AfterValidator(to_naive_utc)]


class CamelModel(BaseModel):
    """Entity base: camelCase aliases, populated by either name, validated on assignment."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_assignment=True,
    )

    def to_wire(self) -> dict:
        """JSON-compatible dict using camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)
