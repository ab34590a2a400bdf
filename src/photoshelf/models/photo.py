"""
Photo record model for photoshelf.

A PhotoRecord is the unit of persistence in the catalog. It is created once
by the ingestion pipeline and never edited afterwards.
"""

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime


@dataclass(frozen=True)
class PhotoRecord:
    """
    Catalog entry for one stored photo.

    ``filename`` names the original variant on disk and, by convention, the
    thumbnail and preview variants as well.
    """

    id: str
    filename: str
    original_name: str
    tags: tuple[str, ...] = field(default_factory=tuple)
    uploaded_by: str | None = None
    uploaded_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def create_new(
        cls,
        filename: str,
        original_name: str,
        tags: list[str] | tuple[str, ...] | None = None,
        uploaded_by: str | None = None,
        uploaded_at: datetime | None = None,
    ) -> "PhotoRecord":
        """
        Create a new PhotoRecord with a generated ID and current timestamp.

        Args:
            filename: Stored filename of the original variant
            original_name: Name supplied by the uploader
            tags: Normalized tags, in the order they were given
            uploaded_by: Identity of the uploading user
            uploaded_at: Upload time (defaults to now)

        Returns:
            New PhotoRecord instance
        """
        return cls(
            id=str(uuid.uuid4()),
            filename=filename,
            original_name=original_name,
            tags=tuple(tags or ()),
            uploaded_by=uploaded_by,
            uploaded_at=uploaded_at or datetime.now(UTC),
        )

    def to_dict(self) -> dict:
        """Convert to a plain dictionary for rendering or JSON output."""
        return {
            "id": self.id,
            "filename": self.filename,
            "original_name": self.original_name,
            "tags": list(self.tags),
            "uploaded_by": self.uploaded_by,
            "uploaded_at": self.uploaded_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PhotoRecord":
        """
        Create PhotoRecord from a dictionary (e.g., a catalog row).

        Args:
            data: Dictionary containing photo fields

        Returns:
            PhotoRecord instance
        """
        uploaded_at = data["uploaded_at"]
        if isinstance(uploaded_at, str):
            uploaded_at = datetime.fromisoformat(uploaded_at)
        if uploaded_at.tzinfo is None:
            uploaded_at = uploaded_at.replace(tzinfo=UTC)

        return cls(
            id=data["id"],
            filename=data["filename"],
            original_name=data["original_name"],
            tags=tuple(data.get("tags") or ()),
            uploaded_by=data.get("uploaded_by"),
            uploaded_at=uploaded_at,
        )

    def validate(self) -> bool:
        """Check required fields and tag shape."""
        if not self.id or not self.filename or not self.original_name:
            return False

        return all(isinstance(tag, str) and tag.strip() for tag in self.tags)

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags
