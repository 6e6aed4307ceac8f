from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest

from fakes import StubGuild, StubMember, StubUser, make_role
from unicorn_bot.actor import Actor, RoleRef
from unicorn_bot.errors import IdentityResolutionError


def test_member_roles_are_matched_by_id_or_name() -> None:
    dj = make_role(11, "dj")
    mod = make_role(12, "moderator")
    guild = StubGuild(roles=[dj, mod])
    member = guild.add_member(StubMember(1, "alice", roles=[dj], nick="Al"))

    actor = Actor.resolve(member=member)

    assert actor.user_id == "1"
    assert actor.roles == frozenset({RoleRef(id="11", name="dj")})
    assert actor.has_role("dj") is True
    assert actor.has_role(11) is True
    assert actor.has_role("moderator") is False
    assert actor.matching_roles(["dj", "11", "admin"]) == frozenset({"dj", "11"})
    assert actor.original_nickname == "Al"
    assert actor.display_name == "Al"
    assert actor.guild is guild


def test_bare_user_is_resolved_through_the_guild_cache() -> None:
    dj = make_role(11, "dj")
    guild = StubGuild(roles=[dj])
    guild.add_member(StubMember(1, "alice", roles=[dj]))

    actor = Actor.from_author(StubUser(1, "alice"), guild)

    assert actor.has_role("dj") is True
    assert actor.member is not None


def test_uncached_guild_user_is_not_resolved() -> None:
    with pytest.raises(IdentityResolutionError):
        Actor.from_author(StubUser(2, "bob"), StubGuild())


def test_user_outside_a_guild_gets_an_actor_without_roles() -> None:
    actor = Actor.from_author(StubUser(2, "bob"), None)
    assert actor.roles == frozenset()
    assert actor.member is None
    assert actor.guild is None


def test_missing_identity_raises() -> None:
    with pytest.raises(IdentityResolutionError):
        Actor.resolve()
    with pytest.raises(IdentityResolutionError):
        Actor.from_author(None, None)


def test_bot_flag_is_copied_from_the_user() -> None:
    assert Actor.resolve(user=StubUser(3, "other-bot", bot=True)).is_bot is True
    assert Actor.resolve(user=StubUser(4, "human")).is_bot is False


def test_guild_owner_and_administrators_are_admins() -> None:
    guild = StubGuild(owner_id=1)
    owner = guild.add_member(StubMember(1, "owner"))
    admin = guild.add_member(StubMember(2, "admin"))
    admin.guild_permissions = SimpleNamespace(administrator=True)
    regular = guild.add_member(StubMember(3, "regular"))

    assert Actor.resolve(member=owner).is_admin_of_guild is True
    assert Actor.resolve(member=admin).is_admin_of_guild is True
    assert Actor.resolve(member=regular).is_admin_of_guild is False
    assert Actor.resolve(user=StubUser(4)).is_admin_of_guild is False


def test_nickname_and_role_changes_are_tracked() -> None:
    dj = make_role(11, "dj")
    guild = StubGuild(roles=[dj])
    member = guild.add_member(StubMember(1, "alice", nick="Al"))
    actor = Actor.resolve(member=member)

    async def _run() -> None:
        await actor.set_nickname("DJ Al", "party")
        assert actor.current_nickname == "DJ Al"
        await actor.reset_nickname()
        assert actor.current_nickname == "Al"
        await actor.add_role("dj")
        assert actor.has_role("dj") is True
        await actor.remove_role(11)
        assert actor.has_role("dj") is False

    asyncio.run(_run())
    assert member.edits[0] == {"nick": "DJ Al", "reason": "party"}
    assert member.edits[1] == {"nick": "Al", "reason": "Nickname reset"}


def test_payload_round_trip_uses_the_client_cache() -> None:
    guild = StubGuild(gid=77)
    member = guild.add_member(StubMember(1, "alice"))
    client = SimpleNamespace(get_guild=lambda gid: guild if gid == 77 else None, get_user=lambda uid: None)

    payload = Actor.resolve(member=member).to_payload()
    restored = Actor.from_payload(payload, client)

    assert payload["guild_id"] == "77"
    assert restored.user_id == "1"
    with pytest.raises(IdentityResolutionError):
        Actor.from_payload({"user_id": "5", "guild_id": None}, client)
