from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

import psycopg
from psycopg import AsyncConnection, sql
from psycopg.types.json import Json

from ..db import run_in_transaction
from ..errors import DuplicateEntry, NameCollision, StoreUnavailable
from ..logging import get_logger
from ..models.catalog import CatalogEntry, EntryKind

T = TypeVar("T")

logger = get_logger("drivefeed.repository.postgres")

# unique index on (name, parent_id, user_id), see sql/001_catalog_files.sql
DEFAULT_NAME_CONSTRAINT = "unique_file"

# values of the ``type`` column
KIND_COLUMN_VALUES = {
    EntryKind.FILE: "file",
    EntryKind.DIRECTORY: "dir",
}

_COLUMNS = (
    "id",
    "name",
    "type",
    "mime_type",
    "size",
    "category",
    "encrypted",
    "user_id",
    "status",
    "channel_id",
    "parent_id",
    "created_at",
    "updated_at",
    "parts",
)

TransactionRunner = Callable[[str, Callable[[AsyncConnection[Any]], Awaitable[T]]], Awaitable[T]]


def entry_params(entry: CatalogEntry) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "name": entry.name,
        "type": KIND_COLUMN_VALUES[entry.kind],
        "mime_type": entry.mime_type,
        "size": entry.size_bytes,
        "category": entry.category,
        "encrypted": entry.encrypted,
        "user_id": entry.owner_id,
        "status": entry.status,
        "channel_id": entry.source_channel_id,
        "parent_id": entry.parent_id,
        "created_at": entry.created_at,
        "updated_at": entry.updated_at,
        "parts": Json(entry.parts),
    }


class PostgresCatalogStore:
    """Inserts catalog entries into ``<schema>.files``.

    Only a ``UniqueViolation`` on ``name_constraint`` is a name collision;
    any other violated constraint is reported as ``StoreUnavailable``.
    """

    def __init__(
        self,
        database_url: str,
        schema: str = "teldrive",
        table: str = "files",
        runner: Optional[TransactionRunner] = None,
        name_constraint: str = DEFAULT_NAME_CONSTRAINT,
    ) -> None:
        self._database_url = database_url
        self._name_constraint = name_constraint
        self._table = sql.Identifier(schema, table)
        self._runner = runner or run_in_transaction

    def insert_statement(self, if_absent: bool) -> sql.Composed:
        statement = sql.SQL("INSERT INTO {table} ({columns}) VALUES ({values})").format(
            table=self._table,
            columns=sql.SQL(", ").join(sql.Identifier(column) for column in _COLUMNS),
            values=sql.SQL(", ").join(sql.Placeholder(column) for column in _COLUMNS),
        )
        if if_absent:
            statement = statement + sql.SQL(" ON CONFLICT (id) DO NOTHING")
        return statement

    async def insert(self, entry: CatalogEntry, *, if_absent: bool = False) -> None:
        statement = self.insert_statement(if_absent)
        params = entry_params(entry)

        async def _execute(conn: AsyncConnection[Any]) -> int:
            async with conn.cursor() as cur:
                await cur.execute(statement, params)
                return cur.rowcount

        try:
            inserted = await self._runner(self._database_url, _execute)
        except psycopg.errors.UniqueViolation as exc:
            constraint = exc.diag.constraint_name
            if constraint == self._name_constraint:
                raise NameCollision(entry.name, constraint=constraint) from exc
            logger.error(
                "catalog_constraint_violated",
                file_id=entry.id,
                constraint=constraint,
                error=str(exc),
            )
            raise StoreUnavailable(f"constraint {constraint} violated: {exc}") from exc
        except psycopg.Error as exc:
            logger.error("catalog_insert_failed", file_id=entry.id, error=str(exc))
            raise StoreUnavailable(str(exc)) from exc

        if if_absent and inserted == 0:
            raise DuplicateEntry(entry.id)


__all__ = ["DEFAULT_NAME_CONSTRAINT", "KIND_COLUMN_VALUES", "PostgresCatalogStore", "entry_params"]
