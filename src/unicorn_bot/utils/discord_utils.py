from __future__ import annotations

from typing import Any

import discord

from unicorn_bot.actor import Actor
from unicorn_bot.errors import IdentityResolutionError


def _matches(obj: Any, name_or_id: str | int) -> bool:
    key = str(name_or_id)
    return str(obj.id) == key or getattr(obj, "name", None) == key


def _require_guild(guild: Any | None) -> Any:
    if guild is None:
        raise ValueError("this lookup needs a guild")
    return guild


async def get_role(guild: Any | None, name_or_id: str | int) -> discord.Role | None:
    guild = _require_guild(guild)
    roles = await guild.fetch_roles()
    return next((role for role in roles if _matches(role, name_or_id)), None)


async def get_channel(guild: Any | None, name_or_id: str | int) -> discord.abc.GuildChannel | None:
    guild = _require_guild(guild)
    channels = await guild.fetch_channels()
    return next((channel for channel in channels if _matches(channel, name_or_id)), None)


async def _fetch_members(guild: Any) -> list[discord.Member]:
    return [member async for member in guild.fetch_members(limit=None)]


async def get_user(guild: Any | None, user_id: str | int) -> Actor:
    """
    Resolve a guild member as an Actor.

    Tries the member cache first, then falls back to an API fetch.
    """

    guild = _require_guild(guild)
    member = guild.get_member(int(user_id))
    if member is None:
        try:
            member = await guild.fetch_member(int(user_id))
        except (discord.NotFound, discord.Forbidden, discord.HTTPException) as exc:
            raise IdentityResolutionError(f"member {user_id} not found in guild {guild.id}") from exc
    return Actor.resolve(member=member)


async def get_members_by_role(guild: Any | None, name_or_id: str | int, *, as_actors: bool = True) -> list[Any]:
    guild = _require_guild(guild)
    role = await get_role(guild, name_or_id)
    if role is None:
        return []
    members = [member for member in await _fetch_members(guild) if any(r.id == role.id for r in member.roles)]
    if as_actors:
        return [Actor.resolve(member=member) for member in members]
    return members


async def get_guild_admins(guild: Any | None) -> list[Actor]:
    guild = _require_guild(guild)
    admins: list[Actor] = []
    for member in await _fetch_members(guild):
        actor = Actor.resolve(member=member)
        if actor.is_admin_of_guild and not actor.is_bot:
            admins.append(actor)
    return admins


def game_master_permissions() -> discord.Permissions:
    return discord.Permissions(
        create_instant_invite=True,
        kick_members=True,
        ban_members=True,
        manage_channels=True,
        add_reactions=True,
        priority_speaker=True,
        stream=True,
        view_channel=True,
        send_messages=True,
        send_tts_messages=True,
        manage_messages=True,
        embed_links=True,
        attach_files=True,
        read_message_history=True,
        mention_everyone=True,
        use_external_emojis=True,
        mute_members=True,
        deafen_members=True,
        move_members=True,
        use_voice_activation=True,
        change_nickname=True,
        manage_nicknames=True,
    )
