from __future__ import annotations

import asyncio
from types import SimpleNamespace

import discord
import pytest

from fakes import make_logger
from unicorn_bot.config import Settings
from unicorn_bot.errors import ConfigurationError
from unicorn_bot.registry import CommandRegistry
from unicorn_bot.services.slash_sync_service import SlashCommandSync


async def _noop(event) -> None:
    return None


class StubHttp:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[tuple] = []

    async def bulk_upsert_guild_commands(self, application_id, guild_id, payload):
        self._maybe_fail()
        self.calls.append(("guild", application_id, guild_id, payload))

    async def bulk_upsert_global_commands(self, application_id, payload):
        self._maybe_fail()
        self.calls.append(("global", application_id, payload))

    def _maybe_fail(self) -> None:
        if self.fail:
            raise discord.HTTPException(SimpleNamespace(status=400, reason="Bad Request"), "invalid form body")


def _registry() -> CommandRegistry:
    registry = CommandRegistry()
    registry.register({"name": "ping", "description": "pong", "command_handler": _noop})
    registry.register({"name": "say", "description": "d", "command_handler": _noop, "is_slash_command": False})
    return registry


def test_dev_mode_registers_on_the_guild() -> None:
    settings = Settings(discord_token="t", client_id=42, guild_id=7, dev_mode=True)
    client = SimpleNamespace(application_id=None, http=StubHttp())

    count = asyncio.run(SlashCommandSync(settings, _registry(), make_logger()).sync(client))

    assert count == 1
    scope, application_id, guild_id, payload = client.http.calls[0]
    assert (scope, application_id, guild_id) == ("guild", 42, 7)
    assert [entry["name"] for entry in payload] == ["ping"]


def test_production_registers_globally() -> None:
    settings = Settings(discord_token="t", client_id=42)
    client = SimpleNamespace(application_id=99, http=StubHttp())

    asyncio.run(SlashCommandSync(settings, _registry(), make_logger()).sync(client))

    assert client.http.calls[0][:2] == ("global", 99)


def test_registration_errors_are_fatal() -> None:
    settings = Settings(discord_token="t", client_id=42)
    client = SimpleNamespace(application_id=None, http=StubHttp(fail=True))
    with pytest.raises(ConfigurationError):
        asyncio.run(SlashCommandSync(settings, _registry(), make_logger()).sync(client))


def test_missing_application_id_is_fatal() -> None:
    client = SimpleNamespace(application_id=None, http=StubHttp())
    with pytest.raises(ConfigurationError):
        asyncio.run(SlashCommandSync(Settings(discord_token="t"), _registry(), make_logger()).sync(client))
