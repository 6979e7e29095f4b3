from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Optional


@dataclass(slots=True)
class DocumentMetadata:
    filename: str
    size_bytes: int
    mime_type: str
    category: str
    message_id: int
    document_id: Optional[int] = None


@dataclass(slots=True)
class IngestStats:
    """Counters for one binding's pipeline, logged on shutdown."""

    updates: int = 0
    messages: int = 0
    no_message: int = 0
    filtered: int = 0
    skipped: Counter = field(default_factory=Counter)
    ingested: int = 0
    renamed: int = 0
    duplicates: int = 0
    failed: int = 0

    def record_skip(self, reason: str) -> None:
        self.skipped[reason] += 1

    def as_dict(self) -> Dict[str, object]:
        return {
            "updates": self.updates,
            "messages": self.messages,
            "no_message": self.no_message,
            "filtered": self.filtered,
            "skipped": dict(self.skipped),
            "ingested": self.ingested,
            "renamed": self.renamed,
            "duplicates": self.duplicates,
            "failed": self.failed,
        }


__all__ = ["DocumentMetadata", "IngestStats"]
