from __future__ import annotations

import pytest

from fakes import make_logger
from unicorn_bot.command import Command
from unicorn_bot.errors import ConfigurationError
from unicorn_bot.registry import CommandRegistry


async def _noop(event) -> None:
    return None


def _ping() -> dict:
    return {"name": "ping", "description": "pong", "command_handler": _noop}


def test_lookup_returns_the_owning_command() -> None:
    registry = CommandRegistry(make_logger())
    registry.register(_ping())
    registry.register(
        {
            "name": "playsound",
            "description": "sounds",
            "command_handler": _noop,
            "is_message_command": False,
            "buttons_handler": _noop,
            "buttons_handled": ["playsound-stop"],
            "select_menus_handler": _noop,
            "select_menus_handled": ["playsound"],
        }
    )
    assert registry.lookup("messageCommand:ping").name == "ping"
    assert registry.lookup("button:playsound-stop").name == "playsound"
    assert registry.lookup("selectMenu:playsound").name == "playsound"
    assert registry.lookup("messageCommand:playsound") is None
    assert registry.lookup("mention") is None
    assert registry.message_command_names == frozenset({"ping"})
    assert [command.name for command in registry.slash_commands()] == ["ping", "playsound"]


def test_duplicate_names_are_rejected() -> None:
    registry = CommandRegistry()
    registry.register(_ping())
    with pytest.raises(ConfigurationError):
        registry.register({"name": "PING", "description": "again", "command_handler": _noop})


def test_key_collisions_are_rejected_atomically() -> None:
    registry = CommandRegistry()
    registry.register({"name": "a", "description": "d", "buttons_handler": _noop, "buttons_handled": ["go"]})
    with pytest.raises(ConfigurationError):
        registry.register(
            {
                "name": "b",
                "description": "d",
                "command_handler": _noop,
                "buttons_handler": _noop,
                "buttons_handled": ["go"],
            }
        )
    assert registry.lookup("slashCommand:b") is None
    assert registry.get("b") is None
    assert len(registry.commands) == 1


def test_only_one_command_may_own_the_message_handler() -> None:
    registry = CommandRegistry()
    registry.register({"name": "log", "description": "d", "message_handler": _noop})
    with pytest.raises(ConfigurationError):
        registry.register({"name": "echo", "description": "d", "message_handler": _noop})


def test_frozen_registry_refuses_new_commands() -> None:
    registry = CommandRegistry()
    registry.freeze()
    assert registry.frozen is True
    with pytest.raises(ConfigurationError):
        registry.register(_ping())


def test_summary_lines() -> None:
    registry = CommandRegistry()
    registry.register(_ping())
    registry.register({"name": "hi", "description": "d", "mention_handler": _noop, "dm_handler": _noop})
    lines = registry.summary().lines()
    assert "Slash Commands: ping" in lines
    assert "Message Commands: ping" in lines
    assert "Handled Buttons: none" in lines
    assert "Mention Handlers: hi" in lines
    assert "DM Handlers: hi" in lines
    assert "API Routes: none" in lines


def test_prebuilt_commands_are_validated_on_register() -> None:
    registry = CommandRegistry(make_logger())
    with pytest.raises(ConfigurationError):
        registry.register(Command(name="", description="d", command_handler=_noop))

    command = registry.register(
        Command(name="jukebox", description="d", command_handler=_noop, buttons_handled=("jukebox-next",))
    )

    assert command.buttons_handled == ()
    assert registry.lookup("button:jukebox-next") is None
    assert registry.lookup("slashCommand:jukebox").name == "jukebox"
