"""Platform-neutral shapes of the update stream.

Each level is a closed union: an update is a batch, a message-bearing update
or an update without a message; a message's media is a document or something
else; a document attribute is a filename or something else. Consumers
dispatch once per level on these types.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Tuple, Union

from ..pipeline.channel_ids import ChannelClass


@dataclass(frozen=True, slots=True)
class FilenameAttribute:
    file_name: str


@dataclass(frozen=True, slots=True)
class OtherAttribute:
    kind: str


DocumentAttribute = Union[FilenameAttribute, OtherAttribute]


@dataclass(frozen=True, slots=True)
class Document:
    id: int
    size: int
    mime_type: Optional[str] = None
    attributes: Tuple[DocumentAttribute, ...] = ()


@dataclass(frozen=True, slots=True)
class DocumentMedia:
    # None when the platform reports an empty/deleted document
    document: Optional[Document]


@dataclass(frozen=True, slots=True)
class OtherMedia:
    kind: str


Media = Union[DocumentMedia, OtherMedia]


@dataclass(frozen=True, slots=True)
class ChannelMessage:
    id: int
    channel_id: Optional[int]
    # None for peers that are neither channels nor legacy groups
    channel_class: Optional[ChannelClass] = None
    date: Optional[datetime] = None
    media: Optional[Media] = None
    text: str = ""


@dataclass(frozen=True, slots=True)
class MessageUpdate:
    message: ChannelMessage


@dataclass(frozen=True, slots=True)
class NoMessageUpdate:
    kind: str


@dataclass(frozen=True, slots=True)
class UpdateBatch:
    updates: Tuple["Update", ...] = field(default_factory=tuple)


Update = Union[UpdateBatch, MessageUpdate, NoMessageUpdate]


__all__ = [
    "ChannelMessage",
    "Document",
    "DocumentAttribute",
    "DocumentMedia",
    "FilenameAttribute",
    "Media",
    "MessageUpdate",
    "NoMessageUpdate",
    "OtherAttribute",
    "OtherMedia",
    "Update",
    "UpdateBatch",
]
