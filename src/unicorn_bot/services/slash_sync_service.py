from __future__ import annotations

from typing import Any

import discord

from unicorn_bot.config import Settings
from unicorn_bot.errors import ConfigurationError
from unicorn_bot.registry import CommandRegistry
from unicorn_bot.services.logger_service import LoggerService


class SlashCommandSync:
    def __init__(self, settings: Settings, registry: CommandRegistry, logger: LoggerService) -> None:
        self.settings = settings
        self.registry = registry
        self.logger = logger

    def payload(self) -> list[dict[str, Any]]:
        return [command.to_application_command() for command in self.registry.slash_commands()]

    async def sync(self, client: discord.Client) -> int:
        body = self.payload()
        if not body:
            self.logger.info("slash.nothing_to_register")
            return 0
        application_id = client.application_id or self.settings.client_id
        if application_id is None:
            raise ConfigurationError("CLIENT_ID is required to register slash commands")
        try:
            if self.settings.dev_mode:
                await client.http.bulk_upsert_guild_commands(application_id, self.settings.guild_id, body)
            else:
                await client.http.bulk_upsert_global_commands(application_id, body)
        except discord.HTTPException as exc:
            raise ConfigurationError(f"Error during commands registration: {exc}") from exc
        self.logger.info(
            "slash.registered",
            count=len(body),
            scope=f"guild:{self.settings.guild_id}" if self.settings.dev_mode else "global",
        )
        if not self.settings.dev_mode:
            self.logger.warn("slash.global_propagation", note="global commands may take up to an hour to appear")
        return len(body)
