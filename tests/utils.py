"""
Test helpers: fixture orchestration and token login.

Fixture ops are zero-argument coroutine functions. Which ops exist is up to
the caller (`to_do_list`); this module only decides their order and runs
them one after another.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Iterable, Mapping

import httpx

FixtureOp = Callable[[], Awaitable[Any]]

API_PREFIX = "/ghost/api/v0.1"
ADMIN_CLIENT_ID = "ghost-admin"


def get_fixture_ops(
    to_dos: Mapping[str, bool],
    to_do_list: Mapping[str, Callable[..., Any]],
    init_db: Callable[[bool], Awaitable[Any]] | None = None,
) -> list[FixtureOp]:
    """
    Turn a set of fixture names into an ordered list of ops.

    - `init` / `default`: initialise the database first; tables only unless
      `default` is requested.
    - `perms:<obj>`: permissions for one object type, built by the `perms`
      factory in `to_do_list` (`perms:init` is a plain op).
    - anything else: looked up directly in `to_do_list`.
    """
    to_dos = dict(to_dos)
    tables_only = not to_dos.get("default")
    fixture_ops: list[FixtureOp] = []

    if to_dos.get("init") or to_dos.get("default"):
        if init_db is None:
            raise ValueError("init/default requested but no init_db op was given.")

        async def init_database() -> Any:
            return await init_db(tables_only)

        fixture_ops.append(init_database)
    to_dos.pop("default", None)
    to_dos.pop("init", None)

    for to_do in to_dos:
        if to_do != "perms:init" and "perms:" in to_do:
            name, obj = to_do.split(":", 1)
            fixture_ops.append(to_do_list[name](obj))
        else:
            fixture_ops.append(to_do_list[to_do])

    return fixture_ops


async def sequence(ops: Iterable[FixtureOp]) -> list[Any]:
    results = []
    for op in ops:
        results.append(await op())
    return results


async def init_fixtures(
    *names: str,
    to_do_list: Mapping[str, Callable[..., Any]],
    init_db: Callable[[bool], Awaitable[Any]] | None = None,
) -> list[Any]:
    options = {"init": True}
    options.update({name: True for name in names})
    return await sequence(get_fixture_ops(options, to_do_list, init_db))


async def login(
    client: httpx.AsyncClient,
    *,
    email: str,
    password: str,
    client_id: str = ADMIN_CLIENT_ID,
    api_prefix: str = API_PREFIX,
) -> str:
    """
    Exchange user credentials for an access token.
    """
    resp = await client.post(
        f"{api_prefix.rstrip('/')}/authentication/token/",
        data={
            "grant_type": "password",
            "username": email,
            "password": password,
            "client_id": client_id,
        },
    )
    resp.raise_for_status()
    return resp.json()["access_token"]


async def do_auth(
    client: httpx.AsyncClient,
    *names: str,
    to_do_list: Mapping[str, Callable[..., Any]],
    email: str,
    password: str,
) -> str:
    """
    Override the owner user, run any extra fixtures, then log in.
    """
    options = {"owner:post": True}
    options.update({name: True for name in names})
    await sequence(get_fixture_ops(options, to_do_list))
    return await login(client, email=email, password=password)
