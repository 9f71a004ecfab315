"""
Application configuration: load, merge, validate, expose.

The configuration file (`config.py` at the app root) is a Python module that
exports `config`, a dict keyed by environment name. Only the section for the
active environment (`NODE_ENV`) is used. When the file is missing it is
bootstrapped from `config.example.py`.

There is no module-level instance. Build one with `create()` (or
`parse_config()` for plain data) and pass it to whoever needs it; the app
keeps its manager on `app.state.config`.
"""

from __future__ import annotations

import asyncio
import copy
import importlib.util
import ipaddress
import logging
import os
import re
import shutil
from importlib.metadata import PackageNotFoundError, version
from typing import Any, Mapping
from urllib.parse import urlsplit

from fastapi import Request
from pydantic import HttpUrl, TypeAdapter, ValidationError

from . import db, errors

logger = logging.getLogger(__name__)

APP_ROOT = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
CORE_PATH = os.path.join(APP_ROOT, "api")
TESTING_ENVS = ("testing",)

_RESERVED_SUBDIR = re.compile(r"/icollege(/|$)")
_HTTP_URL = TypeAdapter(HttpUrl)
_TLD = re.compile(r"^([a-z\u00a1-\uffff]{2,}|xn--[a-z0-9-]{2,})$", re.IGNORECASE)
_DEPLOY_HELP = "Please check your deployment for config.py or config.example.py."


def _env_name() -> str:
    return os.environ.get("NODE_ENV", "development").strip() or "development"


def _package_version() -> str:
    try:
        return version("icollege")
    except PackageNotFoundError:
        return "0.0.0"


def _merge(target: dict, incoming: Mapping[str, Any]) -> dict:
    """
    Deep-merge `incoming` into `target` in place.

    Nested mappings merge key by key. None counts as "not set" and never
    replaces an existing value. Anything else (lists included) replaces.
    """
    for key, value in incoming.items():
        if value is None:
            continue
        current = target.get(key)
        if isinstance(value, Mapping):
            if not isinstance(current, dict):
                current = {}
                target[key] = current
            _merge(current, value)
        else:
            target[key] = copy.deepcopy(value)
    return target


def _lookup(mapping: Any, segments: list[str]) -> tuple[bool, Any]:
    current = mapping
    for segment in segments:
        if not isinstance(current, Mapping) or segment not in current:
            return False, None
        current = current[segment]
    return True, current


def _is_site_url(url: Any) -> bool:
    """
    An http(s) URL with an explicit scheme whose host is `localhost`, an IP
    address, or a dotted domain name with a top-level domain.
    """
    try:
        parsed = _HTTP_URL.validate_python(url)
    except ValidationError:
        return False

    host = (parsed.host or "").strip("[]")
    if host == "localhost":
        return True
    try:
        ipaddress.ip_address(host)
        return True
    except ValueError:
        pass
    labels = host.rstrip(".").split(".")
    return len(labels) > 1 and all(labels) and _TLD.match(labels[-1]) is not None


def _subdir_for(url: str | None) -> str:
    if not url:
        return ""
    local_path = urlsplit(url).path
    if local_path not in ("", "/"):
        local_path = re.sub(r"/$", "", local_path)
    return "" if local_path in ("", "/") else local_path


class ConfigManager:
    def __init__(self, config: Mapping[str, Any] | None = None):
        # Our internal representation of the current config.
        self._config: dict[str, Any] = {}

        self.set(config if isinstance(config, Mapping) else {})

    # -- accessors -----------------------------------------------------

    def get(self, key: str | None = None, default: Any = None) -> Any:
        """
        Read the config.

        Without a key the whole mapping is returned. A dotted key such as
        "server.port" reads a nested value, falling back to `default`.
        """
        if key is None:
            return self._config
        found, value = _lookup(self._config, key.split("."))
        return value if found else default

    @property
    def url(self) -> str | None:
        return self._config.get("url")

    @property
    def server(self) -> dict:
        return self._config.get("server") or {}

    @property
    def database(self) -> dict:
        return self._config.get("database") or {}

    @property
    def paths(self) -> dict:
        return self._config["paths"]

    @property
    def privacy(self) -> dict | None:
        return self._config.get("privacy")

    @property
    def uploads(self) -> dict:
        return self._config["uploads"]

    @property
    def deprecated_items(self) -> list[str]:
        return list(self._config.get("deprecatedItems") or [])

    # -- mutation ------------------------------------------------------

    def set(self, config: Mapping[str, Any]) -> None:
        """
        Merge a (possibly partial) config into the current one.

        Two kinds of fields behave differently here, on purpose:
        - values that come from the config file are merge-protected: a later
          call only changes the keys it actually sets.
        - derived and static fields (everything under `paths` except
          `config` and `contentPath`, `uploads`, `deprecatedItems`,
          `icollegeVersion`) are recomputed and overwritten on every call,
          so they always agree with the current `url` and `contentPath`.

        This does no I/O. Connecting to the database is `db.connect_database`.
        """
        _merge(self._config, config)

        # Always keep a paths mapping; several readers expect it.
        paths = self._config.get("paths")
        if not isinstance(paths, dict):
            paths = {}
            self._config["paths"] = paths

        subdir = _subdir_for(self._config.get("url"))

        # Allow contentPath to be overridden, default to <appRoot>/content.
        content_path = paths.get("contentPath") or os.path.join(APP_ROOT, "content")

        _merge(
            self._config,
            {
                "icollegeVersion": _package_version(),
                "paths": {
                    "appRoot": APP_ROOT,
                    "subdir": subdir,
                    "config": paths.get("config") or os.path.join(APP_ROOT, "config.py"),
                    "configExample": os.path.join(APP_ROOT, "config.example.py"),
                    "corePath": CORE_PATH,
                    "contentPath": content_path,
                    "imagesPath": os.path.join(content_path, "images"),
                    "imagesRelPath": "content/images",
                    "exportPath": os.path.join(CORE_PATH, "data", "export") + os.sep,
                    "lang": os.path.join(CORE_PATH, "shared", "lang") + os.sep,
                },
                "uploads": {
                    # Used by the upload API to limit uploads to images.
                    "extensions": [".jpg", ".jpeg", ".gif", ".png", ".svg", ".svgz"],
                    "contentTypes": ["image/jpeg", "image/png", "image/gif", "image/svg+xml"],
                },
                "deprecatedItems": ["mail.fromaddress"],
            },
        )

    def get_socket(self) -> str | bool:
        server = self.server
        if "socket" in server:
            socket = server["socket"]
            if isinstance(socket, str):
                return socket
            return os.path.join(self.paths["contentPath"], f"{_env_name()}.socket")
        return False

    # -- loading -------------------------------------------------------

    async def load(self, config_file_path: str | None = None) -> dict[str, Any]:
        """
        Make sure the config file exists, validate it, then merge it in.

        Raises the first error hit along the way (missing template, I/O
        failure, validation failure).
        """
        override = os.environ.get("GHOST_CONFIG", "").strip()
        self.paths["config"] = override or config_file_path or self.paths["config"]

        exists = await asyncio.to_thread(os.path.exists, self.paths["config"])
        if not exists:
            logger.info("config_missing path=%s bootstrapping=true", self.paths["config"])
            await self.write_file()

        raw_config = await self.validate()
        return await self.init(raw_config)

    async def write_file(self) -> None:
        """
        Copy config.example.py to config.py.
        """
        config_path = self.paths["config"]
        example_path = self.paths["configExample"]

        template_exists = await asyncio.to_thread(os.path.exists, example_path)
        if not template_exists:
            raise errors.ConfigError(
                "Could not locate a configuration file.",
                context=APP_ROOT,
                help=_DEPLOY_HELP,
            )

        await asyncio.to_thread(_copy_file, example_path, config_path)
        logger.info("config_written path=%s template=%s", config_path, example_path)

    def read_file(self, env: str, path: str | None = None) -> dict[str, Any] | None:
        """
        Import the config file as a module and return the section for `env`.
        """
        path = path or self.paths["config"]
        spec = importlib.util.spec_from_file_location("_icollege_config", path)
        if spec is None or spec.loader is None:
            raise ImportError(f"Cannot import config file: {path}")
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
        return (getattr(module, "config", None) or {}).get(env)

    async def validate(self) -> dict[str, Any]:
        """
        Check the environment's config section has everything we need.

        Returns the raw section; it is not merged in yet.
        """
        env = _env_name()
        config = await asyncio.to_thread(self.read_file, env)

        # Check we even have a config.
        if not config or not isinstance(config, Mapping):
            errors.log_error(
                "Cannot find the configuration for the current NODE_ENV",
                f"NODE_ENV={env}",
                "Ensure your config.py has a section for the current NODE_ENV value and is formatted properly.",
            )
            raise errors.ConfigError(f"Unable to load config for NODE_ENV={env}")

        url = config.get("url")
        if not _is_site_url(url):
            errors.log_error(
                "Your site url in config.py is invalid.",
                str(url),
                "Please make sure this is a valid url before restarting",
            )
            raise errors.ConfigError("invalid site url")

        if _RESERVED_SUBDIR.search(urlsplit(url).path):
            errors.log_error(
                "Your site url in config.py cannot contain a subdirectory called icollege.",
                url,
                "Please rename the subdirectory before restarting",
            )
            raise errors.ConfigError("icollege subdirectory not allowed")

        database = config.get("database")
        if not isinstance(database, Mapping) or not database.get("mongodb"):
            errors.log_error(
                "Your database configuration in config.py is invalid.",
                repr(database),
                "Please make sure this is a valid mongodb database configuration",
            )
            raise errors.ConfigError("invalid database configuration")

        server = config.get("server")
        if not isinstance(server, Mapping):
            server = None
        has_host_and_port = server is not None and bool(server.get("host")) and bool(server.get("port"))
        has_socket = server is not None and bool(server.get("socket"))
        if not (has_host_and_port or has_socket):
            errors.log_error(
                "Your server values (socket, or host and port) in config.py are invalid.",
                repr(server),
                "Please provide them before restarting.",
            )
            raise errors.ConfigError("invalid server configuration")

        return config

    async def init(self, raw_config: Mapping[str, Any]) -> dict[str, Any]:
        # raw_config is only the section for the active NODE_ENV.
        self.set(raw_config)
        return self._config

    # -- checks --------------------------------------------------------

    def is_privacy_disabled(self, privacy_flag: str) -> bool:
        privacy = self.privacy
        if not privacy:
            return False

        if privacy.get("useTinfoil") is True:
            return True

        return privacy.get(privacy_flag) is False

    def check_deprecated(self) -> list[str]:
        """
        Warn about every deprecated config item that is set.

        Returns the offending dotted paths.
        """
        found_paths: list[str] = []
        for item in self.deprecated_items:
            found, _ = _lookup(self._config, item.split("."))
            if not found:
                continue
            found_paths.append(item)
            errors.log_warn(
                f"The configuration property [{item}] has been deprecated.",
                "This will be removed in a future version, please update your config.py file.",
                "Please check config.example.py for the most up-to-date example.",
            )
        return found_paths


def _copy_file(source: str, destination: str) -> None:
    try:
        src = open(source, "rb")
    except OSError:
        errors.log_error("Could not open config.example.py for read.", APP_ROOT, _DEPLOY_HELP)
        raise

    with src:
        try:
            dst = open(destination, "wb")
        except OSError:
            errors.log_error("Could not open config.py for write.", APP_ROOT, _DEPLOY_HELP)
            raise
        with dst:
            try:
                shutil.copyfileobj(src, dst)
            except OSError:
                errors.log_error("Could not copy config.example.py to config.py.", APP_ROOT, _DEPLOY_HELP)
                raise


def parse_config(raw: Mapping[str, Any]) -> ConfigManager:
    """
    Build a manager from plain data. No file or network access.
    """
    return ConfigManager(raw)


def create(initial: Mapping[str, Any] | None = None) -> ConfigManager:
    """
    Construct the process config.

    In testing environments with no explicit initial data, the matching
    section of config.example.py is used as a starting point.
    """
    manager = ConfigManager(initial)
    if initial is None and _env_name() in TESTING_ENVS:
        defaults = manager.read_file(_env_name(), manager.paths["configExample"])
        if defaults:
            manager.set(defaults)
    return manager


async def shutdown(manager: ConfigManager) -> None:
    await db.close_database()
    logger.info("config_shutdown url=%s", manager.url)


def get_config(request: Request) -> ConfigManager:
    return request.app.state.config
