"""
Pydantic schemas for data crossing the capture/persistence boundary.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ContentArtifact(BaseModel):
    """Extracted readable content of a page.

    Serialized with camelCase keys ({"title", "textContent", "length"}),
    which is the payload stored in a snapshot. ``content`` holds the
    compacted article HTML and is only present when compaction is enabled.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    title: str = Field(..., description="Article title or document title")
    text_content: str = Field(..., alias="textContent", description="Readable text")
    length: int = Field(..., ge=0, description="Character count of text_content")
    content: str | None = Field(None, description="Compacted article HTML fragment")

    @classmethod
    def from_text(cls, title: str, text: str, content: str | None = None) -> "ContentArtifact":
        """Build an artifact whose length is derived from the text."""
        return cls(title=title, text_content=text, length=len(text), content=content)

    def to_json(self) -> str:
        """Serialize to the stored snapshot payload."""
        return self.model_dump_json(by_alias=True, exclude_none=True)

    @classmethod
    def from_json(cls, payload: str) -> "ContentArtifact":
        """Parse a stored snapshot payload."""
        return cls.model_validate_json(payload)


class Snapshot(BaseModel):
    """Durable record of one successful capture."""

    model_config = ConfigDict(frozen=True)

    id: str
    url: str
    content: str = Field(..., description="Serialized ContentArtifact")
    captured_at: datetime

    @property
    def artifact(self) -> ContentArtifact:
        """Decoded content payload."""
        return ContentArtifact.from_json(self.content)


class SnapshotSummary(BaseModel):
    """Listing row for a snapshot (content omitted)."""

    id: str
    url: str
    captured_at: datetime


class Source(BaseModel):
    """A URL registered for periodic capture."""

    id: str
    url: str
    is_active: bool = True
    last_snapshot_at: datetime | None = None
    created_at: datetime | None = None
    snapshot_count: int | None = None


class SnapshotStats(BaseModel):
    """Aggregate statistics over stored snapshots.

    Failed attempts are never persisted, so ``failure`` is always zero.
    """

    total: int = 0
    today: int = 0
    per_source: dict[str, int] = Field(default_factory=dict)
    success: int = 0
    failure: int = 0
