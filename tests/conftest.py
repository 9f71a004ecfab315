"""Shared fixtures for the config, database and helper tests."""

import logging
from pathlib import Path

import pytest

from core import db
from core.config import ConfigManager

logging.basicConfig(
    level=logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

VALID_SECTION = {
    "url": "https://example.com",
    "database": {
        "mongodb": {
            "connection": {"host": "127.0.0.1", "port": 27017, "database": "icollege-test"},
        },
    },
    "server": {"host": "127.0.0.1", "port": "2369"},
}


def write_config_file(path: Path, sections: dict) -> Path:
    """Write a config.py exporting `config` with the given sections."""
    path.write_text(f"config = {sections!r}\n", encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def testing_env(monkeypatch):
    monkeypatch.setenv("NODE_ENV", "testing")
    monkeypatch.delenv("GHOST_CONFIG", raising=False)


@pytest.fixture(autouse=True)
def reset_database(monkeypatch):
    monkeypatch.setattr(db, "_client", None)
    monkeypatch.setattr(db, "_db", None)
    monkeypatch.setattr(db, "_lock", None)
    monkeypatch.setattr(db, "_lock_loop", None)


@pytest.fixture
def manager():
    return ConfigManager()


@pytest.fixture
def config_file(tmp_path, manager):
    """A valid config.py for the testing environment, wired into `manager`."""
    path = write_config_file(tmp_path / "config.py", {"testing": VALID_SECTION})
    manager.paths["config"] = str(path)
    return path
