from __future__ import annotations

import asyncio
from pathlib import Path

import discord

from fakes import StubGuild, StubInteraction, StubMember, make_context, make_logger, select_data
from unicorn_bot.events import NormalizedEvent
from unicorn_bot.registry import CommandRegistry
from unicorn_bot.services.sound_service import SoundManager
from unicorn_bot.ui.sound_command import sound_command


class StubVoiceClient:
    def __init__(self) -> None:
        self.playing = True
        self.stopped = 0

    def is_playing(self) -> bool:
        return self.playing

    def stop(self) -> None:
        self.playing = False
        self.stopped += 1


def _sounds(tmp_path: Path) -> Path:
    (tmp_path / "effects").mkdir()
    (tmp_path / "horn.webm").write_bytes(b"")
    (tmp_path / "effects" / "applause.webm").write_bytes(b"")
    (tmp_path / "readme.txt").write_text("not a sound", encoding="utf-8")
    return tmp_path


def _manager(tmp_path: Path) -> SoundManager:
    return SoundManager(
        channel_name="Radio",
        sound_files_dir=_sounds(tmp_path),
        default_volumes={"horn": 0.5},
        logger=make_logger(),
    )


def _event(values: list[str]) -> NormalizedEvent:
    guild = StubGuild()
    user = guild.add_member(StubMember(1, "alice"))
    raw = StubInteraction(
        user=user, data=select_data("playsound", values), kind=discord.InteractionType.component, guild=guild
    )
    return NormalizedEvent.from_interaction(raw, make_context())


def test_sound_names_are_found_recursively(tmp_path: Path) -> None:
    manager = _manager(tmp_path)
    assert manager.sound_names() == ["applause", "horn"]
    assert manager.volume_for("horn") == 0.5
    assert manager.volume_for("applause") == 0.15


def test_stop_halts_playback_and_shows_the_menu(tmp_path: Path) -> None:
    manager = _manager(tmp_path)
    manager.voice_client = StubVoiceClient()
    event = _event(["stop"])

    async def _run() -> None:
        await manager.play_or_stop(event, event.select_menu_value)

    asyncio.run(_run())
    assert manager.voice_client.stopped == 1
    sent = event.raw.response.sent[0]
    assert sent["content"] == "Stop."
    custom_ids = [child.custom_id for child in sent["view"].children]
    assert custom_ids == ["playsound", "playsound-stop"]


def test_unknown_sound_is_reported(tmp_path: Path) -> None:
    manager = _manager(tmp_path)
    manager.voice_client = StubVoiceClient()
    event = _event(["trumpet"])

    asyncio.run(manager.play_or_stop(event, "trumpet"))
    assert event.raw.response.sent[0]["content"] == 'Sound "trumpet" not found'
    assert manager.voice_client.stopped == 0


def test_sound_command_registers_its_components(tmp_path: Path) -> None:
    registry = CommandRegistry()
    registry.register(sound_command(channel_name="Radio", sound_files_dir=_sounds(tmp_path), required_roles=["dj"]))

    command = registry.lookup("button:playsound-stop")
    assert command is not None
    assert command.name == "playsound"
    assert registry.lookup("selectMenu:playsound") is command
    assert registry.lookup("slashCommand:playsound") is command
    assert registry.lookup("messageCommand:playsound") is None
    assert command.required_roles == ("dj",)
