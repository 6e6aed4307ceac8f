from __future__ import annotations

import asyncio
from types import SimpleNamespace

import discord
import pytest

from fakes import StubGuild, StubMember, make_role
from unicorn_bot.errors import IdentityResolutionError
from unicorn_bot.utils import discord_utils


class FetchingGuild(StubGuild):
    async def fetch_member(self, user_id: int):
        raise discord.NotFound(SimpleNamespace(status=404, reason="Not Found"), "Unknown Member")


def _guild() -> FetchingGuild:
    dj = make_role(11, "dj")
    guild = FetchingGuild(roles=[dj], channels=[SimpleNamespace(id=20, name="Radio")], owner_id=1)
    guild.add_member(StubMember(1, "owner"))
    guild.add_member(StubMember(2, "bob", roles=[dj]))
    guild.add_member(StubMember(3, "helper-bot", roles=[dj], bot=True))
    return guild


def test_roles_and_channels_are_found_by_name_or_id() -> None:
    guild = _guild()
    assert asyncio.run(discord_utils.get_role(guild, "dj")).id == 11
    assert asyncio.run(discord_utils.get_role(guild, 11)).name == "dj"
    assert asyncio.run(discord_utils.get_channel(guild, "Radio")).id == 20
    assert asyncio.run(discord_utils.get_channel(guild, "missing")) is None


def test_get_user_uses_the_cache_and_reports_unknown_members() -> None:
    guild = _guild()
    assert asyncio.run(discord_utils.get_user(guild, "2")).name == "bob"
    with pytest.raises(IdentityResolutionError):
        asyncio.run(discord_utils.get_user(guild, 404))


def test_members_by_role_and_admins() -> None:
    guild = _guild()
    holders = asyncio.run(discord_utils.get_members_by_role(guild, "dj"))
    assert sorted(actor.name for actor in holders) == ["bob", "helper-bot"]
    admins = asyncio.run(discord_utils.get_guild_admins(guild))
    assert [actor.user_id for actor in admins] == ["1"]


def test_lookups_need_a_guild() -> None:
    with pytest.raises(ValueError):
        asyncio.run(discord_utils.get_role(None, "dj"))


def test_game_master_permissions() -> None:
    permissions = discord_utils.game_master_permissions()
    assert permissions.manage_nicknames is True
    assert permissions.administrator is False
