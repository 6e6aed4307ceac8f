from __future__ import annotations

import asyncio
from typing import Any, Iterable, Mapping

import discord

from unicorn_bot.actor import Actor
from unicorn_bot.config import Settings
from unicorn_bot.dispatcher import Dispatcher, DispatchStatus
from unicorn_bot.events import RoutingContext
from unicorn_bot.registry import CommandRegistry
from unicorn_bot.services.api_server import ApiServer, derive_api_key
from unicorn_bot.services.command_loader import CommandLoader
from unicorn_bot.services.logger_service import LoggerService
from unicorn_bot.services.slash_sync_service import SlashCommandSync
from unicorn_bot.storage import MessagePackStore
from unicorn_bot.utils import discord_utils


class UnicornBot(discord.Client):
    def __init__(self, settings: Settings, commands: Iterable[Mapping[str, Any]] = ()) -> None:
        intents = discord.Intents.default()
        intents.guilds = True
        intents.members = True
        intents.messages = True
        intents.message_content = True
        intents.dm_messages = True
        intents.voice_states = True
        super().__init__(intents=intents)
        self.settings = settings
        self.store = MessagePackStore(settings.store_path if settings.persistent_storage else None)
        self.logger = LoggerService(self.store, level=settings.log_level)
        self.registry = CommandRegistry(self.logger)
        self.loader = CommandLoader(self.logger)
        self.slash_sync = SlashCommandSync(settings, self.registry, self.logger)
        self.dispatcher = Dispatcher(
            self.registry,
            self.logger,
            context_provider=self.routing_context,
            bot=self,
            error_content=settings.error_content,
        )
        self.api_server: ApiServer | None = None
        self._pending: list[Mapping[str, Any]] = list(commands)
        self._routing_context: RoutingContext | None = None
        self._autosave_task: asyncio.Task | None = None
        self._ready_once = False

    def add_command(self, definition: Mapping[str, Any]) -> None:
        if self.registry.frozen:
            self.registry.register(definition)
            return
        self._pending.append(definition)

    def add_commands(self, definitions: Iterable[Mapping[str, Any]]) -> None:
        for definition in definitions:
            self.add_command(definition)

    def routing_context(self) -> RoutingContext:
        if self._routing_context is not None:
            return self._routing_context
        context = RoutingContext(
            self_user_id=str(self.user.id) if self.user else "",
            self_username=self.user.name if self.user else "",
            prefix=self.settings.command_prefix,
            message_commands=self.registry.message_command_names,
        )
        if self.user is not None and self.registry.frozen:
            self._routing_context = context
        return context

    async def setup_hook(self) -> None:
        await self.store.load()
        self._autosave_task = asyncio.create_task(self.store.autosave_loop(), name="msgpack-autosave")
        self.logger.log(
            "bot.starting",
            prefix=self.settings.command_prefix,
            dev_mode=self.settings.dev_mode,
            persistent_storage=self.store.persistent,
        )
        if self.settings.auto_discover_commands:
            self.registry.register_all(self.loader.discover(self.settings.commands_dir))
        self.registry.register_all(self._pending)
        self._pending.clear()
        self.registry.freeze()
        for line in self.registry.summary().lines():
            self.logger.log("registry.summary", line=line)

        self.api_server = self._build_api_server()
        await self.slash_sync.sync(self)
        if self.api_server is not None:
            await self.api_server.start()

    def _build_api_server(self) -> ApiServer | None:
        routes = self.registry.api_routes()
        if not routes:
            return None
        return ApiServer(
            self,
            routes,
            api_key=derive_api_key(self.settings.client_secret, self.settings.client_id),
            logger=self.logger,
            host=self.settings.api_host,
            port=self.settings.api_port,
        )

    async def on_ready(self) -> None:
        if self._ready_once:
            return
        self._ready_once = True
        self.logger.log(
            "bot.ready",
            user_id=self.user.id if self.user else None,
            username=str(self.user) if self.user else None,
            guilds=len(self.guilds),
        )
        if self.settings.presence_text:
            await self.change_presence(activity=discord.Game(name=self.settings.presence_text))
        await self._say_hello()

    async def _say_hello(self) -> None:
        channel_id = self.settings.service_messages_channel_id
        if channel_id is None:
            return
        for guild in self.guilds:
            channel = guild.get_channel(channel_id)
            if channel is None:
                continue
            try:
                await channel.send(self.settings.hello_message)
            except discord.HTTPException as exc:
                self.logger.warn("bot.hello_failed", guild_id=guild.id, channel_id=channel_id, error=exc)

    async def on_interaction(self, interaction: discord.Interaction) -> DispatchStatus:
        return await self.dispatcher.dispatch_interaction(interaction)

    async def on_message(self, message: discord.Message) -> DispatchStatus:
        return await self.dispatcher.dispatch_message(message)

    async def on_guild_join(self, guild: discord.Guild) -> None:
        self.logger.log("bot.guild_joined", guild_id=guild.id, guild_name=guild.name)

    async def on_error(self, event_method: str, /, *args: Any, **kwargs: Any) -> None:
        self.logger.error("bot.event_error", event_method=event_method)
        await super().on_error(event_method, *args, **kwargs)

    async def close(self) -> None:
        if self.api_server is not None:
            await self.api_server.stop()
        if self._autosave_task is not None:
            self._autosave_task.cancel()
        await self.store.save()
        await super().close()

    async def get_role(self, guild: Any, name_or_id: str | int) -> discord.Role | None:
        return await discord_utils.get_role(guild, name_or_id)

    async def get_channel_by(self, guild: Any, name_or_id: str | int) -> Any | None:
        return await discord_utils.get_channel(guild, name_or_id)

    async def get_actor(self, guild: Any, user_id: str | int) -> Actor:
        return await discord_utils.get_user(guild, user_id)

    async def get_members_by_role(self, guild: Any, name_or_id: str | int, *, as_actors: bool = True) -> list[Any]:
        return await discord_utils.get_members_by_role(guild, name_or_id, as_actors=as_actors)

    async def get_guild_admins(self, guild: Any) -> list[Actor]:
        return await discord_utils.get_guild_admins(guild)


def main() -> None:
    settings = Settings.load()
    bot = UnicornBot(settings)
    bot.run(settings.discord_token)
