"""
Domain models for the plant registry.

These models represent the core business concepts. They have no dependencies
on external frameworks, databases, or APIs. How a plant is laid out in the
document store is the repository's business, not the model's.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import PurePosixPath
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Attachment:
    """
    A binary file supplied when a plant is created.

    Frozen because an attachment is a value: the bytes and their
    declared type never change between upload and storage.
    """
    name: str
    content: bytes
    mime_type: str

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.stored_name:
            raise ValueError("Attachment name cannot be empty")
        if self.stored_name in (".", ".."):
            raise ValueError(f"Attachment name cannot be {self.stored_name!r}")
        if not isinstance(self.mime_type, str) or not self.mime_type.strip():
            raise ValueError("Attachment mime type cannot be empty")

    @property
    def stored_name(self) -> str:
        """
        Name the object is stored under.

        Browsers sometimes send a full client-side path as the filename,
        so only the final path component is kept.
        """
        return PurePosixPath(self.name.replace("\\", "/")).name.strip()

    @property
    def size_bytes(self) -> int:
        return len(self.content)


@dataclass
class Plant:
    """
    One persisted plant entry.

    attachment_urls is None when the URLs were not resolved (list views
    by default), otherwise it lines up 1:1 with attachment_names.
    """
    id: str
    fields: dict[str, Any] = field(default_factory=dict)
    attachment_names: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=utc_now)
    attachment_urls: Optional[list[str]] = None

    @property
    def has_attachments(self) -> bool:
        return bool(self.attachment_names)


@dataclass
class Page(Generic[T]):
    """One bounded slice of an ordered listing."""
    items: list[T] = field(default_factory=list)
    has_more: bool = False

    @property
    def last_key(self) -> Optional[str]:
        """Id of the last item, used as the cursor for the next page."""
        if not self.items:
            return None
        return getattr(self.items[-1], "id", None)
