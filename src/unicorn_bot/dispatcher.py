from __future__ import annotations

import inspect
import traceback
from enum import Enum
from typing import Any, Awaitable, Callable

import discord

from unicorn_bot.classifier import ALL_KINDS, COMMAND_KINDS, SLASH_COMMAND, split_key
from unicorn_bot.command import Command, extract_options
from unicorn_bot.errors import ConfigurationError, HandlerExecutionError, IdentityResolutionError, ReplyDeliveryError
from unicorn_bot.events import NormalizedEvent, RoutingContext
from unicorn_bot.services.logger_service import LoggerService

Observer = Callable[[NormalizedEvent], Awaitable[Any] | Any]
OBSERVER_CHANNELS = tuple(f"external:{kind}" for kind in ALL_KINDS)
DEFAULT_ERROR_CONTENT = "An error occurred while executing the command"

HANDLER_LABELS = {
    "button": "Button handler",
    "selectMenu": "Select menu handler",
    "slashCommand": "Slash Command",
    "messageCommand": "Message Command",
    "mention": "Mention Handler",
    "message": "Message Handler",
    "directMessage": "DM Handler",
}


class DispatchStatus(str, Enum):
    UNRESOLVED = "unresolved"
    SELF = "self"
    BOT = "bot"
    IGNORED = "ignored"
    UNROUTED = "unrouted"
    DENIED = "denied"
    HANDLED = "handled"
    FAILED = "failed"


class Dispatcher:
    """Routes raw gateway events to the one command that owns their event-kind key.

    Every step runs in order for a single event; failures stay local to that
    event and end up in the log, never in the gateway loop.
    """

    def __init__(
        self,
        registry: Any,
        logger: LoggerService,
        *,
        context_provider: Callable[[], RoutingContext],
        bot: Any | None = None,
        error_content: str = DEFAULT_ERROR_CONTENT,
    ) -> None:
        self.registry = registry
        self.logger = logger
        self.context_provider = context_provider
        self.bot = bot
        self.error_content = error_content
        self._observers: dict[str, list[Observer]] = {channel: [] for channel in OBSERVER_CHANNELS}

    def observe(self, kind: str, callback: Observer) -> None:
        channel = kind if kind.startswith("external:") else f"external:{kind}"
        if channel not in self._observers:
            raise ConfigurationError(f"unknown notification channel {channel!r}")
        self._observers[channel].append(callback)

    async def dispatch_interaction(self, interaction: Any) -> DispatchStatus:
        async def build() -> NormalizedEvent:
            return NormalizedEvent.from_interaction(
                interaction, self.context_provider(), bot=self.bot, logger=self.logger
            )

        return await self._dispatch(build)

    async def dispatch_message(self, message: Any) -> DispatchStatus:
        async def build() -> NormalizedEvent:
            return await NormalizedEvent.from_message(message, self.context_provider(), bot=self.bot, logger=self.logger)

        return await self._dispatch(build)

    async def _dispatch(self, build: Callable[[], Awaitable[NormalizedEvent]]) -> DispatchStatus:
        try:
            event = await build()
        except IdentityResolutionError as exc:
            self.logger.warn("dispatch.identity_unresolved", error=exc)
            return DispatchStatus.UNRESOLVED
        except discord.HTTPException as exc:
            self.logger.warn("dispatch.partial_fetch_failed", error=exc)
            return DispatchStatus.UNRESOLVED

        if event.is_from_self:
            return DispatchStatus.SELF
        if event.is_from_bot:
            self.logger.info("dispatch.ignored_bot", user_id=event.author.user_id)
            return DispatchStatus.BOT

        key = event.event_kind
        if key is None:
            self.logger.debug("dispatch.ignored", event_id=event.raw_id, shape=event.shape.value)
            return DispatchStatus.IGNORED
        self.logger.info("dispatch.received", key=key, event_id=event.raw_id)
        await self._notify(key, event)

        command = self.registry.lookup(key)
        if command is None:
            return DispatchStatus.UNROUTED
        kind, _ = split_key(key)
        if kind in COMMAND_KINDS and event.is_direct_message and not command.accept_dm:
            self.logger.info("dispatch.dm_not_accepted", command=command.name, user_id=event.author.user_id)
            return DispatchStatus.UNROUTED
        return await self._run(command, key, event)

    async def _notify(self, key: str, event: NormalizedEvent) -> None:
        kind, _ = split_key(key)
        for observer in self._observers.get(f"external:{kind}", ()):
            try:
                result = observer(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:  # noqa: BLE001
                self.logger.error("dispatch.observer_failed", key=key, error=exc)

    async def _run(self, command: Command, key: str, event: NormalizedEvent) -> DispatchStatus:
        kind, _ = split_key(key)
        handler = command.handler_for(key)
        if handler is None:
            return DispatchStatus.UNROUTED
        self.logger.info(
            "command.triggered",
            handler=HANDLER_LABELS.get(kind, kind),
            command=command.name,
            user_id=event.author.user_id,
            where=event.where(),
            event_id=event.raw_id,
        )
        try:
            if kind == SLASH_COMMAND:
                event.command_options = extract_options(command, event)
            if not command.policy.allows(event.author):
                self.logger.info("command.denied", command=command.name, user_id=event.author.user_id)
                await self._reply_safely(event, command.required_roles_error_message, key)
                return DispatchStatus.DENIED
            result = handler(event)
            if inspect.isawaitable(result):
                await result
        except ReplyDeliveryError as exc:
            self.logger.error("reply.undeliverable", command=command.name, key=key, error=exc, context=event.describe())
            return DispatchStatus.FAILED
        except Exception as exc:  # noqa: BLE001
            failure = HandlerExecutionError(command.name, key, exc)
            self.logger.error(
                "command.failed",
                command=command.name,
                key=key,
                error=failure,
                traceback=traceback.format_exc(),
                context=event.describe(),
            )
            await self._reply_safely(event, self.error_content, key)
            return DispatchStatus.FAILED
        return DispatchStatus.HANDLED

    async def _reply_safely(self, event: NormalizedEvent, content: str, key: str) -> None:
        try:
            await event.reply(content, ephemeral=True)
        except ReplyDeliveryError as exc:
            self.logger.error("reply.undeliverable", key=key, error=exc, event_id=event.raw_id)
