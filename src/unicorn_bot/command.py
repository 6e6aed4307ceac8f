from __future__ import annotations

import re
from dataclasses import dataclass, field, fields
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Mapping

import discord

from unicorn_bot.actor import Actor
from unicorn_bot.authorization import DEFAULT_DENIAL_MESSAGE, RolePolicy
from unicorn_bot.classifier import (
    BUTTON,
    DIRECT_MESSAGE,
    MENTION,
    MESSAGE,
    MESSAGE_COMMAND,
    SELECT_MENU,
    SLASH_COMMAND,
    event_key,
    split_key,
)
from unicorn_bot.errors import ConfigurationError, IdentityResolutionError

if TYPE_CHECKING:
    from unicorn_bot.events import NormalizedEvent
    from unicorn_bot.services.logger_service import LoggerService

Handler = Callable[["NormalizedEvent"], Awaitable[Any] | Any]

# Discord application command option type codes.
OPTION_TYPE_CODES: dict[str, int] = {
    "string": 3,
    "integer": 4,
    "boolean": 5,
    "user": 6,
    "member": 6,
    "channel": 7,
    "role": 8,
    "mentionable": 9,
    "number": 10,
    "decimal": 10,
    "attachment": 11,
}
SLASH_NAME_RE = re.compile(r"^[-_a-z0-9]{1,32}$")
HTTP_METHODS = {"GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"}
KNOWN_KEYS = frozenset(
    {
        "name",
        "description",
        "command_handler",
        "buttons_handler",
        "select_menus_handler",
        "mention_handler",
        "message_handler",
        "dm_handler",
        "is_slash_command",
        "is_message_command",
        "accept_dm",
        "required_roles",
        "require_all_roles",
        "required_roles_error_message",
        "options",
        "buttons_handled",
        "select_menus_handled",
        "required_permissions",
        "api_routes",
    }
)


@dataclass(frozen=True)
class CommandOption:
    name: str
    description: str
    type: str
    required: bool = False
    choices: tuple[Mapping[str, Any], ...] = ()
    name_localizations: Mapping[str, str] | None = None
    description_localizations: Mapping[str, str] | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "type": OPTION_TYPE_CODES[self.type],
            "name": self.name,
            "description": self.description,
            "required": self.required,
        }
        if self.choices:
            payload["choices"] = [dict(choice) for choice in self.choices]
        if self.name_localizations:
            payload["name_localizations"] = dict(self.name_localizations)
        if self.description_localizations:
            payload["description_localizations"] = dict(self.description_localizations)
        return payload


@dataclass(frozen=True)
class ApiRoute:
    method: str
    path: str
    handler: Callable[..., Awaitable[Any]]


@dataclass(frozen=True)
class Command:
    name: str
    description: str
    command_handler: Handler | None = None
    buttons_handler: Handler | None = None
    select_menus_handler: Handler | None = None
    mention_handler: Handler | None = None
    message_handler: Handler | None = None
    dm_handler: Handler | None = None
    is_slash_command: bool = True
    is_message_command: bool = True
    accept_dm: bool = False
    required_roles: tuple[str, ...] = ()
    require_all_roles: bool = False
    required_roles_error_message: str = DEFAULT_DENIAL_MESSAGE
    options: tuple[CommandOption, ...] = ()
    buttons_handled: tuple[str, ...] = ()
    select_menus_handled: tuple[str, ...] = ()
    required_permissions: int = 0
    api_routes: tuple[ApiRoute, ...] = ()
    policy: RolePolicy = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "policy",
            RolePolicy(
                required_roles=frozenset(self.required_roles),
                require_all=self.require_all_roles,
                denial_message=self.required_roles_error_message,
            ),
        )

    @property
    def handled_event_kinds(self) -> tuple[str, ...]:
        keys: list[str] = []
        keys.extend(event_key(BUTTON, button_id) for button_id in self.buttons_handled)
        keys.extend(event_key(SELECT_MENU, menu_id) for menu_id in self.select_menus_handled)
        if self.is_slash_command:
            keys.append(event_key(SLASH_COMMAND, self.name))
        if self.is_message_command:
            keys.append(event_key(MESSAGE_COMMAND, self.name))
        if self.mention_handler is not None:
            keys.append(MENTION)
        if self.message_handler is not None:
            keys.append(MESSAGE)
        if self.dm_handler is not None:
            keys.append(DIRECT_MESSAGE)
        return tuple(keys)

    def handler_for(self, key: str) -> Handler | None:
        if key not in self.handled_event_kinds:
            return None
        kind, _ = split_key(key)
        return {
            BUTTON: self.buttons_handler,
            SELECT_MENU: self.select_menus_handler,
            SLASH_COMMAND: self.command_handler,
            MESSAGE_COMMAND: self.command_handler,
            MENTION: self.mention_handler,
            MESSAGE: self.message_handler,
            DIRECT_MESSAGE: self.dm_handler,
        }[kind]

    def to_application_command(self) -> dict[str, Any]:
        return {
            "type": 1,
            "name": self.name,
            "description": self.description,
            "options": [option.to_payload() for option in self.options],
            "dm_permission": self.accept_dm,
            "default_member_permissions": str(self.required_permissions) if self.required_permissions else None,
        }


def build_command(definition: Mapping[str, Any] | Command, logger: "LoggerService | None" = None) -> Command:
    """Validate one command definition and freeze it into a Command.

    Missing name/description, malformed options and malformed API routes are
    fatal. Handler/identifier mismatches only demote the offending part.
    """
    if isinstance(definition, Command):
        definition = _definition_of(definition)
    if not isinstance(definition, Mapping):
        raise ConfigurationError(f"a command definition must be a mapping, got {type(definition).__name__}")

    def warn(event: str, **data: object) -> None:
        if logger is not None:
            logger.warn(event, **data)

    raw_name = definition.get("name")
    if not isinstance(raw_name, str) or not raw_name.strip():
        raise ConfigurationError("A command must have a name.")
    name = raw_name.strip().lower()
    description = definition.get("description")
    if not isinstance(description, str) or not description.strip():
        raise ConfigurationError(f"Command {name} must have a description.")

    unknown = sorted(set(definition) - KNOWN_KEYS)
    if unknown:
        warn("command.unknown_keys", command=name, keys=unknown)

    is_slash = bool(definition.get("is_slash_command", True))
    is_message = bool(definition.get("is_message_command", True))
    if is_slash and not SLASH_NAME_RE.fullmatch(name):
        raise ConfigurationError(f"Command {name!r} is not a valid slash command name.")

    command_handler = _handler(definition, "command_handler", name, warn)
    buttons_handler = _handler(definition, "buttons_handler", name, warn)
    select_menus_handler = _handler(definition, "select_menus_handler", name, warn)
    mention_handler = _handler(definition, "mention_handler", name, warn)
    message_handler = _handler(definition, "message_handler", name, warn)
    dm_handler = _handler(definition, "dm_handler", name, warn)

    buttons = _identifiers(definition, "buttons_handled", name, warn)
    if buttons and buttons_handler is None:
        warn("command.buttons_without_handler", command=name, buttons=list(buttons))
        buttons = ()
    if not buttons and buttons_handler is not None:
        warn("command.buttons_handler_unused", command=name)

    menus = _identifiers(definition, "select_menus_handled", name, warn)
    if menus and select_menus_handler is None:
        warn("command.select_menus_without_handler", command=name, select_menus=list(menus))
        menus = ()
    if not menus and select_menus_handler is not None:
        warn("command.select_menus_handler_unused", command=name)

    if (is_slash or is_message) and command_handler is None:
        warn("command.missing_command_handler", command=name)
        is_slash = is_message = False

    options = tuple(_option(raw, name) for raw in definition.get("options") or ())
    routes = tuple(_route(raw, name) for raw in definition.get("api_routes") or ())

    command = Command(
        name=name,
        description=description.strip(),
        command_handler=command_handler,
        buttons_handler=buttons_handler,
        select_menus_handler=select_menus_handler,
        mention_handler=mention_handler,
        message_handler=message_handler,
        dm_handler=dm_handler,
        is_slash_command=is_slash,
        is_message_command=is_message,
        accept_dm=bool(definition.get("accept_dm", False)),
        required_roles=tuple(str(role) for role in definition.get("required_roles") or ()),
        require_all_roles=bool(definition.get("require_all_roles", False)),
        required_roles_error_message=str(definition.get("required_roles_error_message") or DEFAULT_DENIAL_MESSAGE),
        options=options,
        buttons_handled=buttons,
        select_menus_handled=menus,
        required_permissions=_permissions(definition.get("required_permissions") or (), name),
        api_routes=routes,
    )

    if not command.handled_event_kinds:
        if command.api_routes:
            if logger is not None:
                logger.info("command.api_only", command=name, routes=len(command.api_routes))
        else:
            warn("command.handles_nothing", command=name)
    return command


def _definition_of(command: Command) -> dict[str, Any]:
    return {item.name: getattr(command, item.name) for item in fields(command) if item.init}


def _handler(definition: Mapping[str, Any], key: str, name: str, warn: Callable[..., None]) -> Handler | None:
    value = definition.get(key)
    if value is None:
        return None
    if not callable(value):
        warn("command.handler_not_callable", command=name, handler=key)
        return None
    return value


def _identifiers(definition: Mapping[str, Any], key: str, name: str, warn: Callable[..., None]) -> tuple[str, ...]:
    value = definition.get(key)
    if value is None:
        return ()
    if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple)):
        warn("command.identifiers_not_a_list", command=name, field=key, got=type(value).__name__)
        return ()
    if any(not isinstance(item, str) or not item for item in value):
        warn("command.identifiers_not_strings", command=name, field=key)
        return ()
    return tuple(dict.fromkeys(value))


def _option(raw: Any, command_name: str) -> CommandOption:
    if isinstance(raw, CommandOption):
        raw = {
            "name": raw.name,
            "description": raw.description,
            "type": raw.type,
            "required": raw.required,
            "choices": raw.choices,
            "name_localized": raw.name_localizations,
            "description_localized": raw.description_localizations,
        }
    if not isinstance(raw, Mapping):
        raise ConfigurationError(f"Option {raw!r} must be a mapping in command {command_name}.")
    if not raw.get("name"):
        raise ConfigurationError(f"Option {raw!r} must have a name in command {command_name}.")
    if not raw.get("description"):
        raise ConfigurationError(f"Option {raw['name']} must have a description in command {command_name}.")
    option_type = str(raw.get("type", "")).lower()
    if option_type not in OPTION_TYPE_CODES:
        raise ConfigurationError(f"Unknown option type {raw.get('type')!r} while declaring command {command_name}.")
    return CommandOption(
        name=str(raw["name"]).lower(),
        description=str(raw["description"]),
        type=option_type,
        required=bool(raw.get("required", False)),
        choices=tuple(raw.get("choices") or ()),
        name_localizations=raw.get("name_localized"),
        description_localizations=raw.get("description_localized"),
    )


def _route(raw: Any, command_name: str) -> ApiRoute:
    if isinstance(raw, ApiRoute):
        method, path, handler = raw.method, raw.path, raw.handler
        if path == f"/{command_name}" or path.startswith(f"/{command_name}/"):
            path = path[len(command_name) + 1 :]
    elif isinstance(raw, Mapping):
        method, path, handler = raw.get("method"), raw.get("path"), raw.get("handler")
    else:
        raise ConfigurationError(f"API route {raw!r} must be a mapping in command {command_name}.")
    method = str(method or "").upper()
    if method not in HTTP_METHODS:
        raise ConfigurationError(f"API route in {command_name} has an invalid method {method!r}.")
    if not callable(handler):
        raise ConfigurationError(f"API route {method} {path} in {command_name} needs a handler.")
    path = str(path or "")
    if path and not path.startswith("/"):
        path = "/" + path
    return ApiRoute(method=method, path=f"/{command_name}{path}", handler=handler)


def _permissions(values: Any, command_name: str) -> int:
    if isinstance(values, (int, discord.Permissions)):
        values = [values]
    bits = 0
    for value in values:
        if isinstance(value, discord.Permissions):
            bits |= value.value
        elif isinstance(value, int) and not isinstance(value, bool):
            bits |= value
        else:
            raise ConfigurationError(f"required_permissions of {command_name} must be ints or discord.Permissions.")
    return bits


def extract_options(command: Command, event: "NormalizedEvent") -> dict[str, Any]:
    """Read the declared options of a slash command from the interaction payload."""
    if not event.is_slash_command:
        return {}
    data = getattr(event.raw, "data", None) or {}
    provided = {str(item.get("name", "")).lower(): item.get("value") for item in data.get("options") or ()}
    resolved = data.get("resolved") or {}
    values: dict[str, Any] = {}
    for option in command.options:
        coerce = OPTION_COERCERS[option.type]
        values[option.name] = coerce(provided.get(option.name), event, resolved)
    return values


def _resolved(resolved: Mapping[str, Any], bucket: str, value: Any) -> Any:
    return (resolved.get(bucket) or {}).get(str(value))


def _snowflake_lookup(getter_owner: Any, getter: str, value: Any) -> Any:
    if getter_owner is None:
        return None
    method = getattr(getter_owner, getter, None)
    if method is None:
        return None
    return method(int(value))


def _coerce_attachment(value: Any, event: "NormalizedEvent", resolved: Mapping[str, Any]) -> Any:
    if value is None:
        return None
    return _resolved(resolved, "attachments", value) or value


def _coerce_boolean(value: Any, event: "NormalizedEvent", resolved: Mapping[str, Any]) -> bool | None:
    if value is None:
        return None
    return bool(value)


def _coerce_channel(value: Any, event: "NormalizedEvent", resolved: Mapping[str, Any]) -> Any:
    if value is None:
        return None
    channel = _snowflake_lookup(event.guild, "get_channel", value) or _snowflake_lookup(event.bot, "get_channel", value)
    return channel or _resolved(resolved, "channels", value) or value


def _coerce_integer(value: Any, event: "NormalizedEvent", resolved: Mapping[str, Any]) -> int | None:
    return None if value is None else int(value)


def _coerce_number(value: Any, event: "NormalizedEvent", resolved: Mapping[str, Any]) -> float | None:
    return None if value is None else float(value)


def _coerce_mentionable(value: Any, event: "NormalizedEvent", resolved: Mapping[str, Any]) -> Any:
    if value is None:
        return None
    found = _snowflake_lookup(event.guild, "get_member", value) or _snowflake_lookup(event.guild, "get_role", value)
    return found or _resolved(resolved, "members", value) or _resolved(resolved, "roles", value) or value


def _coerce_string(value: Any, event: "NormalizedEvent", resolved: Mapping[str, Any]) -> str | None:
    return None if value is None else str(value)


def _coerce_actor(value: Any, event: "NormalizedEvent", resolved: Mapping[str, Any]) -> Actor | None:
    if value is None:
        return None
    member = _snowflake_lookup(event.guild, "get_member", value)
    user = member or _snowflake_lookup(event.bot, "get_user", value)
    try:
        return Actor.resolve(member=member, user=user, guild=event.guild)
    except IdentityResolutionError:
        return None


def _coerce_role(value: Any, event: "NormalizedEvent", resolved: Mapping[str, Any]) -> Any:
    if value is None:
        return None
    return _snowflake_lookup(event.guild, "get_role", value) or _resolved(resolved, "roles", value) or value


OPTION_COERCERS: dict[str, Callable[[Any, "NormalizedEvent", Mapping[str, Any]], Any]] = {
    "attachment": _coerce_attachment,
    "boolean": _coerce_boolean,
    "channel": _coerce_channel,
    "integer": _coerce_integer,
    "number": _coerce_number,
    "decimal": _coerce_number,
    "mentionable": _coerce_mentionable,
    "string": _coerce_string,
    "member": _coerce_actor,
    "user": _coerce_actor,
    "role": _coerce_role,
}
