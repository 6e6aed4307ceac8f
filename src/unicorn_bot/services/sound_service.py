from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any, Mapping

import discord

from unicorn_bot.ui.menus import MenuItem, build_buttons_menu, build_select_menu

if TYPE_CHECKING:
    from unicorn_bot.events import NormalizedEvent
    from unicorn_bot.services.logger_service import LoggerService

SOUND_SUFFIX = ".webm"
STOP_ID = "stop"


class SoundManager:
    """Plays sound files from a directory in one named voice channel."""

    def __init__(
        self,
        *,
        channel_name: str,
        sound_files_dir: Path | str,
        default_volume: float = 0.15,
        default_volumes: Mapping[str, float] | None = None,
        button_prefix: str = "playsound",
        select_menu_name: str = "playsound",
        logger: "LoggerService | None" = None,
    ) -> None:
        self.channel_name = channel_name
        self.sound_files_dir = Path(sound_files_dir)
        self.default_volume = default_volume
        self.default_volumes = dict(default_volumes or {})
        self.button_prefix = button_prefix
        self.select_menu_name = select_menu_name
        self.logger = logger
        self.voice_client: Any | None = None
        self.sound_name: str | None = None
        self.volume = default_volume

    @property
    def is_initiated(self) -> bool:
        return self.voice_client is not None

    async def init(self, event: "NormalizedEvent") -> None:
        _, self.voice_client = await event.join_voice_channel(self.channel_name)

    def sound_names(self) -> list[str]:
        if not self.sound_files_dir.is_dir():
            return []
        return sorted(path.stem for path in self.sound_files_dir.rglob(f"*{SOUND_SUFFIX}"))

    def sound_path(self, sound_name: str) -> Path | None:
        return next((path for path in self.sound_files_dir.rglob(f"*{SOUND_SUFFIX}") if path.stem == sound_name), None)

    def volume_for(self, sound_name: str = "") -> float:
        return float(self.default_volumes.get(sound_name, self.default_volume))

    def menu(self) -> discord.ui.View:
        items = [MenuItem(id=name, label=name) for name in self.sound_names()]
        view = build_select_menu(items, self.select_menu_name, placeholder="Pick a sound to play") if items else None
        return build_buttons_menu(
            [MenuItem(id=STOP_ID, label="Stop", style=discord.ButtonStyle.danger)],
            self.button_prefix,
            view=view,
        )

    async def play(self, event: "NormalizedEvent", sound_name: str | None, volume: float | None = None) -> bool:
        path = self.sound_path(sound_name) if sound_name else None
        if path is None:
            if self.logger is not None:
                self.logger.warn("sound.not_found", sound=sound_name, directory=str(self.sound_files_dir))
            return False
        if self.voice_client is None:
            await self.init(event)
        self.sound_name = sound_name
        self.volume = self.volume_for(sound_name) if volume is None else volume
        source = discord.PCMVolumeTransformer(discord.FFmpegPCMAudio(str(path)), volume=self.volume)
        if self.voice_client.is_playing():
            self.voice_client.stop()
        self.voice_client.play(source)
        await event.reply(
            f'Playing "{self.sound_name}" in "{self.channel_name}" (volume: {self.volume})',
            view=self.menu(),
        )
        return True

    async def stop(self, event: "NormalizedEvent") -> None:
        if self.voice_client is not None and self.voice_client.is_playing():
            self.voice_client.stop()
        await event.reply("Stop.", view=self.menu())

    async def play_or_stop(self, event: "NormalizedEvent", sound_name: str | None, volume: float | None = None) -> None:
        if sound_name == STOP_ID:
            await self.stop(event)
            return
        if not await self.play(event, sound_name, volume):
            await event.reply(f'Sound "{sound_name}" not found', view=self.menu())
