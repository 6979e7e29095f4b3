from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, TypeVar

import psycopg

T = TypeVar("T")


@asynccontextmanager
async def get_connection(database_url: str) -> AsyncIterator[psycopg.AsyncConnection[Any]]:
    conn = await psycopg.AsyncConnection.connect(database_url)
    try:
        yield conn
    finally:
        await conn.close()


async def run_in_transaction(
    database_url: str, fn: Callable[[psycopg.AsyncConnection[Any]], Awaitable[T]]
) -> T:
    async with get_connection(database_url) as conn:
        async with conn.transaction():
            return await fn(conn)


__all__ = ["get_connection", "run_in_transaction"]
