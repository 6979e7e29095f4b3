from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..pipeline.channel_ids import ChannelClass, classify, normalize


class EntryKind(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CatalogEntry(BaseModel):
    """One row of the drive catalog."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    kind: EntryKind = EntryKind.FILE
    size_bytes: Optional[int] = None
    mime_type: Optional[str] = None
    category: Optional[str] = None
    parent_id: Optional[str] = None
    owner_id: int
    source_channel_id: Optional[int] = None
    status: str = "active"
    encrypted: bool = False
    parts: List[Dict[str, Any]] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @model_validator(mode="after")
    def _directories_carry_no_file_fields(self) -> "CatalogEntry":
        if self.kind is EntryKind.DIRECTORY:
            for field_name in ("size_bytes", "mime_type", "source_channel_id"):
                if getattr(self, field_name) is not None:
                    raise ValueError(f"directory entries cannot set {field_name}")
        if not self.name.strip():
            raise ValueError("catalog entry name cannot be blank")
        return self


class ChannelBinding(BaseModel):
    """Association between one configured channel and one target directory."""

    model_config = ConfigDict(frozen=True)

    configured_channel_id: int
    normalized_channel_id: int
    channel_class: ChannelClass
    target_parent_id: Optional[str] = None

    @classmethod
    def from_config(cls, channel_id: int, target_parent_id: Optional[str] = None) -> "ChannelBinding":
        """Build a binding; raises ``UnsupportedChannelIdFormat`` for bad ids."""
        return cls(
            configured_channel_id=channel_id,
            normalized_channel_id=normalize(channel_id),
            channel_class=classify(channel_id),
            target_parent_id=target_parent_id or None,
        )


__all__ = ["CatalogEntry", "ChannelBinding", "EntryKind"]
