"""
Database versioning.

The code declares which schema version it expects; the database records the
version it is at in the `settings` collection under key `databaseVersion`.
"""

from __future__ import annotations

from typing import Any

from core import db

INITIAL_VERSION = "000"

# Version the database should be at or migrated to.
DEFAULT_SETTINGS: dict[str, dict[str, Any]] = {
    "core": {
        "databaseVersion": {"defaultValue": "001"},
    },
}

_default_database_version: str | None = None


class DatabaseVersionError(RuntimeError):
    pass


def get_default_database_version() -> str:
    global _default_database_version
    if _default_database_version is None:
        _default_database_version = str(DEFAULT_SETTINGS["core"]["databaseVersion"]["defaultValue"])
    return _default_database_version


async def get_database_version() -> str:
    """
    Return the version recorded in the database.
    """
    row = await db.database()["settings"].find_one({"key": "databaseVersion"})
    if row is None:
        raise DatabaseVersionError("No database version could be found, settings collection does not exist?")

    value = row.get("value")
    if value is None or str(value).strip() == "":
        # Nothing we understand; assume a fresh database.
        return INITIAL_VERSION

    value = str(value).strip()
    if not value.isdigit():
        raise DatabaseVersionError("Database version is not recognised")
    return value


async def set_database_version() -> None:
    await db.database()["settings"].update_one(
        {"key": "databaseVersion"},
        {"$set": {"value": get_default_database_version()}},
    )
