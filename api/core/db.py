"""
Async MongoDB access using pymongo's asyncio client.

This module owns the client. The app connects it on startup, after the
configuration has been loaded, and closes it on shutdown (see `api/main.py`).

Connection settings come from the `database.mongodb` block of the config:
- connection: {host, port, database}
- options: extra keyword arguments for the client
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping

from pymongo import AsyncMongoClient
from pymongo.asynchronous.database import AsyncDatabase

logger = logging.getLogger(__name__)

_client: AsyncMongoClient | None = None
_db: AsyncDatabase | None = None
_lock: asyncio.Lock | None = None
_lock_loop: asyncio.AbstractEventLoop | None = None


def _connect_lock() -> asyncio.Lock:
    # A lock belongs to one event loop; make a fresh one when the loop changes.
    global _lock, _lock_loop
    loop = asyncio.get_running_loop()
    if _lock is None or _lock_loop is not loop:
        _lock = asyncio.Lock()
        _lock_loop = loop
    return _lock


def _connection_settings(config: Mapping[str, Any]) -> tuple[dict, dict] | None:
    mongodb = (config.get("database") or {}).get("mongodb") or {}
    connection = mongodb.get("connection")
    if not connection:
        return None
    return dict(connection), dict(mongodb.get("options") or {})


async def connect_database(config: Mapping[str, Any]) -> AsyncDatabase | None:
    """
    Connect once per process using the config's `database.mongodb` block.

    Returns the live handle, or None when no connection is configured.
    A failed attempt leaves nothing behind, so calling again retries.
    """
    global _client, _db
    settings = _connection_settings(config)
    if settings is None:
        return None

    async with _connect_lock():
        if _db is not None:
            return _db

        connection, options = settings
        host = str(connection.get("host") or "localhost").strip() or "localhost"
        port = int(connection.get("port") or 27017)
        name = str(connection.get("database") or "").strip()
        if not name:
            raise RuntimeError("database.mongodb.connection.database is not set.")

        client: AsyncMongoClient = AsyncMongoClient(host=host, port=port, **options)
        try:
            handle = client[name]
            await handle.command("ping")
        except Exception:
            await client.close()
            logger.exception("db_connect_failed host=%s port=%s database=%s", host, port, name)
            raise

        _client, _db = client, handle
        logger.info("db_connected host=%s port=%s database=%s", host, port, name)
        return _db


async def close_database() -> None:
    global _client, _db, _lock, _lock_loop
    if _client is None:
        return None
    await _client.close()
    _client = None
    _db = None
    _lock = None
    _lock_loop = None


def is_connected() -> bool:
    return _db is not None


def database() -> AsyncDatabase:
    if _db is None:
        raise RuntimeError("Database is not connected. Call connect_database() on startup.")
    return _db
