from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

import discord

from unicorn_bot.errors import IdentityResolutionError


@dataclass(frozen=True)
class RoleRef:
    id: str
    name: str


class Actor:
    """A platform identity, optionally scoped to one guild membership.

    Built per event from whatever the payload carries. Roles can be queried by
    id or by name, the same way command definitions declare them.
    """

    def __init__(self, *, user: Any, member: Any | None = None) -> None:
        if user is None:
            raise IdentityResolutionError("an actor needs a user or a guild member")
        self.member = member
        self.user = user
        self.user_id = str(user.id)
        self.is_bot = bool(getattr(user, "bot", False))
        self.name = str(getattr(user, "name", "") or "")
        if member is not None:
            self.original_nickname = getattr(member, "nick", None) or ""
            self.roles: frozenset[RoleRef] = frozenset(
                RoleRef(id=str(role.id), name=str(role.name)) for role in getattr(member, "roles", [])
            )
        else:
            self.original_nickname = ""
            self.roles = frozenset()
        self.current_nickname = self.original_nickname

    @classmethod
    def resolve(cls, *, member: Any | None = None, user: Any | None = None, guild: Any | None = None) -> "Actor":
        if member is None and user is not None and guild is not None:
            member = guild.get_member(user.id)
            if member is None:
                raise IdentityResolutionError(f"user {user.id} is not a cached member of guild {guild.id}")
        if member is not None:
            return cls(user=member, member=member)
        if user is not None:
            return cls(user=user)
        raise IdentityResolutionError("event carries neither a guild member nor a user")

    @classmethod
    def from_author(cls, author: Any | None, guild: Any | None) -> "Actor":
        # Guild members carry their roles; bare users need the guild cache.
        if author is not None and hasattr(author, "roles"):
            return cls.resolve(member=author)
        return cls.resolve(user=author, guild=guild)

    @classmethod
    def from_payload(cls, payload: dict[str, Any], client: Any) -> "Actor":
        guild_id = payload.get("guild_id")
        user_id = int(payload["user_id"])
        if guild_id:
            guild = client.get_guild(int(guild_id))
            member = guild.get_member(user_id) if guild is not None else None
            if member is None:
                raise IdentityResolutionError(f"member {user_id} not cached in guild {guild_id}")
            return cls(user=member, member=member)
        user = client.get_user(user_id)
        if user is None:
            raise IdentityResolutionError(f"user {user_id} not cached")
        return cls(user=user)

    def to_payload(self) -> dict[str, Any]:
        guild = self.guild
        return {
            "user_id": self.user_id,
            "guild_id": str(guild.id) if guild is not None else None,
            "nickname": self.current_nickname,
        }

    @property
    def display_name(self) -> str:
        if self.current_nickname:
            return self.current_nickname
        return str(getattr(self.user, "display_name", "") or self.name)

    @property
    def guild(self) -> Any | None:
        if self.member is None:
            return None
        return getattr(self.member, "guild", None)

    @property
    def voice(self) -> Any | None:
        if self.member is None:
            return None
        return getattr(self.member, "voice", None)

    @property
    def role_keys(self) -> frozenset[str]:
        keys: set[str] = set()
        for role in self.roles:
            keys.add(role.id)
            keys.add(role.name)
        return frozenset(keys)

    def has_role(self, name_or_id: str | int) -> bool:
        return str(name_or_id) in self.role_keys

    def has_one_of_roles(self, names_or_ids: Iterable[str | int]) -> bool:
        return any(self.has_role(role) for role in names_or_ids)

    def matching_roles(self, names_or_ids: Iterable[str | int]) -> frozenset[str]:
        keys = self.role_keys
        return frozenset(str(role) for role in names_or_ids if str(role) in keys)

    @property
    def is_admin_of_guild(self) -> bool:
        guild = self.guild
        if guild is None:
            return False
        if str(getattr(guild, "owner_id", "")) == self.user_id:
            return True
        permissions = getattr(self.member, "guild_permissions", None)
        return bool(getattr(permissions, "administrator", False))

    def _require_member(self) -> Any:
        if self.member is None:
            raise IdentityResolutionError(f"user {self.user_id} is not a guild member here")
        return self.member

    def _find_guild_role(self, name_or_id: str | int) -> Any:
        member = self._require_member()
        key = str(name_or_id)
        for role in member.guild.roles:
            if str(role.id) == key or role.name == key:
                return role
        raise LookupError(f"role {key!r} not found in guild {member.guild.id}")

    async def add_role(self, name_or_id: str | int) -> None:
        role = self._find_guild_role(name_or_id)
        await self.member.add_roles(role)
        self.roles = self.roles | {RoleRef(id=str(role.id), name=str(role.name))}

    async def remove_role(self, name_or_id: str | int) -> None:
        role = self._find_guild_role(name_or_id)
        await self.member.remove_roles(role)
        self.roles = frozenset(ref for ref in self.roles if ref.id != str(role.id))

    async def set_nickname(self, nickname: str, reason: str = "") -> None:
        member = self._require_member()
        await member.edit(nick=nickname or None, reason=reason or None)
        self.current_nickname = nickname

    async def reset_nickname(self, nickname: str | None = None) -> None:
        await self.set_nickname(self.original_nickname if nickname is None else nickname, "Nickname reset")

    async def send(self, content: str) -> discord.Message:
        return await self.user.send(content)

    def __repr__(self) -> str:
        return f"Actor(user_id={self.user_id!r}, name={self.name!r}, roles={len(self.roles)})"
