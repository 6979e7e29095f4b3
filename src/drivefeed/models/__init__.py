from .catalog import CatalogEntry, ChannelBinding, EntryKind
from .updates import (
    ChannelMessage,
    Document,
    DocumentMedia,
    FilenameAttribute,
    MessageUpdate,
    NoMessageUpdate,
    OtherAttribute,
    OtherMedia,
    Update,
    UpdateBatch,
)

__all__ = [
    "CatalogEntry",
    "ChannelBinding",
    "ChannelMessage",
    "Document",
    "DocumentMedia",
    "EntryKind",
    "FilenameAttribute",
    "MessageUpdate",
    "NoMessageUpdate",
    "OtherAttribute",
    "OtherMedia",
    "Update",
    "UpdateBatch",
]
