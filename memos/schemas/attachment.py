"""
Attachment Schemas.

Attachment metadata only. The bytes live behind ``url`` (an object URL,
file path or CDN locator) which the store releases when the attachment
stops being referenced.
"""

from pydantic import Field

from memos.schemas.base import CamelModel, UtcDateTime


class Attachment(CamelModel):
    id: str
    filename: str
    type: str = Field(default="application/octet-stream", description="MIME type")
    size: int = Field(ge=0)
    uploaded_at: UtcDateTime
    url: str
