from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest
from aiohttp import web
from aiohttp.test_utils import TestClient, TestServer

from fakes import make_logger
from unicorn_bot.command import build_command
from unicorn_bot.errors import ConfigurationError
from unicorn_bot.services.api_server import USER_ID_HEADER, ApiServer, derive_api_key


async def whoami(request: web.Request) -> web.Response:
    return web.json_response({"user_id": request["user_id"], "bot": request["bot"].name})


def _server(api_key: str) -> ApiServer:
    command = build_command(
        {"name": "profile", "description": "d", "api_routes": [{"method": "GET", "path": "/me", "handler": whoami}]}
    )
    return ApiServer(SimpleNamespace(name="unicorn"), command.api_routes, api_key=api_key, logger=make_logger())


def test_derive_api_key_is_stable_and_secret_dependent() -> None:
    key = derive_api_key("secret", 42)
    assert key == derive_api_key("secret", "42")
    assert key != derive_api_key("other", 42)
    assert len(key) == 64


def test_an_empty_client_secret_cannot_derive_a_key() -> None:
    with pytest.raises(ConfigurationError):
        derive_api_key("", 42)


def test_requests_need_the_api_key_and_a_user_id() -> None:
    api_key = derive_api_key("secret", 42)

    async def _run() -> None:
        client = TestClient(TestServer(_server(api_key).build_app()))
        await client.start_server()
        try:
            ok = await client.get("/profile/me", headers={"Authorization": api_key, USER_ID_HEADER: "123"})
            assert ok.status == 200
            assert await ok.json() == {"user_id": "123", "bot": "unicorn"}

            wrong_key = await client.get("/profile/me", headers={"Authorization": "nope", USER_ID_HEADER: "123"})
            assert wrong_key.status == 401
            assert await wrong_key.json() == {"error": "Unauthorized"}

            no_user = await client.get("/profile/me", headers={"Authorization": api_key})
            assert no_user.status == 401
        finally:
            await client.close()

    asyncio.run(_run())
