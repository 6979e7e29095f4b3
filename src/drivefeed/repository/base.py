from __future__ import annotations

from typing import Protocol

from ..models.catalog import CatalogEntry


class CatalogStore(Protocol):
    """Write side of the catalog used by the ingestion pipeline.

    ``insert`` raises ``NameCollision`` when the store's name uniqueness rule
    rejects the entry, ``DuplicateEntry`` when ``if_absent`` is set and an
    entry with the same id exists, and ``StoreUnavailable`` for anything else.
    """

    async def insert(self, entry: CatalogEntry, *, if_absent: bool = False) -> None:
        ...


__all__ = ["CatalogStore"]
