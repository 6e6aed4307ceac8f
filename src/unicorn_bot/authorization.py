from __future__ import annotations

from dataclasses import dataclass, field

from unicorn_bot.actor import Actor

DEFAULT_DENIAL_MESSAGE = "You do not have the required roles to use this command."


@dataclass(frozen=True)
class RolePolicy:
    required_roles: frozenset[str] = field(default_factory=frozenset)
    require_all: bool = False
    denial_message: str = DEFAULT_DENIAL_MESSAGE

    def allows(self, actor: Actor) -> bool:
        return is_authorized(self, actor)


def is_authorized(policy: RolePolicy, actor: Actor) -> bool:
    if not policy.required_roles:
        return True
    found = actor.matching_roles(policy.required_roles)
    if policy.require_all:
        return len(found) == len(policy.required_roles)
    return len(found) > 0
