"""
Tag Schemas.
"""

from pydantic import Field

from memos.schemas.base import CamelModel

TAG_PALETTE: tuple[str, ...] = (
    "#007aff", "#34c759", "#ff9500", "#ff3b30",
    "#af52de", "#5856d6", "#ff2d55", "#a2845e",
    "#32d74b", "#64d2ff", "#0a84ff", "#5e5ce6",
)
"""Tag colors, assigned cyclically in creation order."""


class Tag(CamelModel):
    id: str
    name: str = Field(min_length=1, max_length=64)
    color: str = TAG_PALETTE[0]

    def matches(self, name: str) -> bool:
        """Case-insensitive name comparison."""
        return self.name.casefold() == name.strip().casefold()
