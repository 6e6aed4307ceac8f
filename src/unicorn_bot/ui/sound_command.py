from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING, Any, Mapping, Sequence

from unicorn_bot.authorization import DEFAULT_DENIAL_MESSAGE
from unicorn_bot.services.sound_service import STOP_ID, SoundManager

if TYPE_CHECKING:
    from unicorn_bot.events import NormalizedEvent


def sound_command(
    *,
    channel_name: str,
    sound_files_dir: Path | str,
    command_name: str = "playsound",
    command_description: str = "Play some sounds in a voice channel",
    play_sound_text: str = "Which sound to play?",
    button_prefix: str = "playsound",
    select_menu_name: str = "playsound",
    default_volume: float = 0.15,
    default_volumes: Mapping[str, float] | None = None,
    required_roles: Sequence[str] = (),
    required_roles_error_message: str = DEFAULT_DENIAL_MESSAGE,
) -> dict[str, Any]:
    """Command definition for a sound board bound to one voice channel."""
    manager: SoundManager | None = None
    lock = asyncio.Lock()

    async def get_manager(event: "NormalizedEvent") -> SoundManager:
        nonlocal manager
        async with lock:
            if manager is None:
                candidate = SoundManager(
                    channel_name=channel_name,
                    sound_files_dir=sound_files_dir,
                    default_volume=default_volume,
                    default_volumes=default_volumes,
                    button_prefix=button_prefix,
                    select_menu_name=select_menu_name,
                    logger=event.logger,
                )
                await candidate.init(event)
                manager = candidate
            return manager

    async def command_handler(event: "NormalizedEvent") -> None:
        sounds = await get_manager(event)
        await event.reply(play_sound_text, view=sounds.menu())

    async def buttons_handler(event: "NormalizedEvent") -> None:
        sounds = await get_manager(event)
        await sounds.stop(event)

    async def select_menus_handler(event: "NormalizedEvent") -> None:
        sounds = await get_manager(event)
        await sounds.play_or_stop(event, event.select_menu_value)

    return {
        "name": command_name,
        "description": command_description,
        "is_slash_command": True,
        "is_message_command": False,
        "required_roles": list(required_roles),
        "required_roles_error_message": required_roles_error_message,
        "command_handler": command_handler,
        "buttons_handler": buttons_handler,
        "select_menus_handler": select_menus_handler,
        "buttons_handled": [f"{button_prefix}-{STOP_ID}"],
        "select_menus_handled": [select_menu_name],
    }
