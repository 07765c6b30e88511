"""Data model for extracted page metadata and stored short-link records."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from typing import Any, Optional

METADATA_FIELDS = ("title", "description", "image", "favicon")
CORE_FIELDS = ("title", "description", "image")


@dataclass
class PageMetadata:
    """Preview metadata for one page.

    Absent fields are ``None``; an absent field is never represented by an
    empty string.
    """

    title: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    favicon: Optional[str] = None

    def __post_init__(self):
        for name in METADATA_FIELDS:
            value = getattr(self, name)
            if isinstance(value, str) and not value.strip():
                setattr(self, name, None)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "PageMetadata":
        if not data:
            return cls()
        values = {}
        for name in METADATA_FIELDS:
            value = data.get(name)
            values[name] = value if isinstance(value, str) else None
        return cls(**values)

    def to_dict(self) -> dict[str, str]:
        """Serialize, omitting absent fields."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }

    def missing_fields(self, names: tuple[str, ...] = METADATA_FIELDS) -> list[str]:
        return [name for name in names if getattr(self, name) is None]

    def has_core_fields(self) -> bool:
        """True when title, description and image are all present."""
        return not self.missing_fields(CORE_FIELDS)

    def has_any_core_field(self) -> bool:
        return len(self.missing_fields(CORE_FIELDS)) < len(CORE_FIELDS)

    def merge_missing(self, other: "PageMetadata | None") -> list[str]:
        """Fill fields that are still absent from ``other``.

        Already-resolved fields are never overwritten. Returns the names of
        the fields that were filled.
        """
        if other is None:
            return []
        filled = []
        for name in METADATA_FIELDS:
            if getattr(self, name) is None and getattr(other, name) is not None:
                setattr(self, name, getattr(other, name))
                filled.append(name)
        return filled

    def copy(self) -> "PageMetadata":
        return replace(self)


@dataclass
class LinkRecord:
    """A stored short link. Owned by the link store, read by the engine."""

    short_code: str
    original_url: str
    metadata: PageMetadata = field(default_factory=PageMetadata)
    last_updated_at: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "short_code": self.short_code,
            "original_url": self.original_url,
            "metadata": self.metadata.to_dict(),
            "last_updated_at": (
                self.last_updated_at.isoformat() if self.last_updated_at else None
            ),
        }
