from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from ..errors import DuplicateEntry, NameCollision, StoreUnavailable
from ..models.catalog import CatalogEntry

NameKey = Tuple[int, Optional[str], str]


class MemoryCatalogStore:
    """In-process catalog used for dry runs.

    Names are unique per ``(owner_id, parent_id, name)``. An id clash is a
    ``DuplicateEntry`` with ``if_absent`` and ``StoreUnavailable`` otherwise.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, CatalogEntry] = {}
        self._names: Dict[NameKey, str] = {}

    @staticmethod
    def _name_key(entry: CatalogEntry) -> NameKey:
        return (entry.owner_id, entry.parent_id, entry.name)

    async def insert(self, entry: CatalogEntry, *, if_absent: bool = False) -> None:
        if entry.id in self._entries:
            if if_absent:
                raise DuplicateEntry(entry.id)
            raise StoreUnavailable(f"catalog entry id {entry.id} already stored")
        key = self._name_key(entry)
        if key in self._names:
            raise NameCollision(entry.name, constraint="unique_file")
        self._entries[entry.id] = entry
        self._names[key] = entry.id

    def entries(self) -> List[CatalogEntry]:
        return list(self._entries.values())

    def get(self, entry_id: str) -> Optional[CatalogEntry]:
        return self._entries.get(entry_id)

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["MemoryCatalogStore"]
