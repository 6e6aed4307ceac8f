from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Iterable, Mapping

from unicorn_bot.classifier import BUTTON, MESSAGE_COMMAND, SELECT_MENU, SLASH_COMMAND, split_key
from unicorn_bot.command import ApiRoute, Command, build_command
from unicorn_bot.errors import ConfigurationError

if TYPE_CHECKING:
    from unicorn_bot.services.logger_service import LoggerService


@dataclass(frozen=True)
class RegistrySummary:
    slash_commands: tuple[str, ...]
    message_commands: tuple[str, ...]
    buttons: tuple[str, ...]
    select_menus: tuple[str, ...]
    mention_handlers: tuple[str, ...]
    message_handlers: tuple[str, ...]
    dm_handlers: tuple[str, ...]
    api_routes: tuple[str, ...]

    def lines(self) -> list[str]:
        rows = [
            ("Slash Commands", self.slash_commands),
            ("Message Commands", self.message_commands),
            ("Handled Buttons", self.buttons),
            ("Handled Select Menus", self.select_menus),
            ("Mention Handlers", self.mention_handlers),
            ("Message Handlers", self.message_handlers),
            ("DM Handlers", self.dm_handlers),
            ("API Routes", self.api_routes),
        ]
        return [f"{label}: {', '.join(values) if values else 'none'}" for label, values in rows]


class CommandRegistry:
    """Owns every registered Command and the event-kind key index over them.

    Each key belongs to exactly one command. The index is filled at startup and
    frozen before the first event is dispatched; lookups never mutate it.
    """

    def __init__(self, logger: "LoggerService | None" = None) -> None:
        self.logger = logger
        self._commands: list[Command] = []
        self._index: dict[str, int] = {}
        self._names: set[str] = set()
        self._frozen = False

    def register(self, definition: Mapping[str, Any] | Command) -> Command:
        if self._frozen:
            raise ConfigurationError("the command registry is frozen; register commands before startup")
        command = build_command(definition, self.logger)
        if command.name in self._names:
            raise ConfigurationError(f"a command named {command.name!r} is already registered")
        keys = command.handled_event_kinds
        for key in keys:
            if key in self._index:
                owner = self._commands[self._index[key]].name
                raise ConfigurationError(f"{command.name!r} handles {key!r}, already owned by {owner!r}")
        position = len(self._commands)
        self._commands.append(command)
        self._names.add(command.name)
        for key in keys:
            self._index[key] = position
        if self.logger is not None:
            self.logger.debug("registry.registered", command=command.name, keys=list(keys))
        return command

    def register_all(self, definitions: Iterable[Mapping[str, Any] | Command]) -> list[Command]:
        return [self.register(definition) for definition in definitions]

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def lookup(self, key: str) -> Command | None:
        position = self._index.get(key)
        if position is None:
            return None
        return self._commands[position]

    def get(self, name: str) -> Command | None:
        return next((command for command in self._commands if command.name == name.lower()), None)

    @property
    def commands(self) -> tuple[Command, ...]:
        return tuple(self._commands)

    def keys(self) -> tuple[str, ...]:
        return tuple(self._index)

    @property
    def message_command_names(self) -> frozenset[str]:
        return frozenset(self._identifiers(MESSAGE_COMMAND))

    def slash_commands(self) -> list[Command]:
        return [command for command in self._commands if command.is_slash_command]

    def api_routes(self) -> list[ApiRoute]:
        return [route for command in self._commands for route in command.api_routes]

    def _identifiers(self, kind: str) -> list[str]:
        found = []
        for key in self._index:
            key_kind, identifier = split_key(key)
            if key_kind == kind and identifier is not None:
                found.append(identifier)
        return found

    def summary(self) -> RegistrySummary:
        return RegistrySummary(
            slash_commands=tuple(self._identifiers(SLASH_COMMAND)),
            message_commands=tuple(self._identifiers(MESSAGE_COMMAND)),
            buttons=tuple(self._identifiers(BUTTON)),
            select_menus=tuple(self._identifiers(SELECT_MENU)),
            mention_handlers=tuple(c.name for c in self._commands if c.mention_handler is not None),
            message_handlers=tuple(c.name for c in self._commands if c.message_handler is not None),
            dm_handlers=tuple(c.name for c in self._commands if c.dm_handler is not None),
            api_routes=tuple(f"{route.method} {route.path}" for route in self.api_routes()),
        )
