from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Sequence

import discord

from unicorn_bot.actor import Actor
from unicorn_bot.classifier import classify
from unicorn_bot.errors import ReplyDeliveryError
from unicorn_bot.utils import discord_utils

if TYPE_CHECKING:
    from unicorn_bot.services.logger_service import LoggerService

BUTTON_COMPONENT_TYPES = frozenset({discord.ComponentType.button.value})
SELECT_COMPONENT_TYPES = frozenset(
    {
        discord.ComponentType.select.value,
        discord.ComponentType.user_select.value,
        discord.ComponentType.role_select.value,
        discord.ComponentType.mentionable_select.value,
        discord.ComponentType.channel_select.value,
    }
)
CHAT_INPUT_COMMAND = 1


class RawShape(Enum):
    INTERACTION = "interaction"
    MESSAGE = "message"


@dataclass(frozen=True)
class RoutingContext:
    """Process-wide routing state, read-only once the bot has logged in."""

    self_user_id: str
    self_username: str
    prefix: str
    message_commands: frozenset[str] = field(default_factory=frozenset)


class NormalizedEvent:
    """One interaction or message, seen through a single uniform shape.

    The raw discord object is kept in ``raw`` for replies and option lookups;
    its shape is decided once, at construction, and recorded in ``shape``.
    """

    def __init__(
        self,
        raw: Any,
        shape: RawShape,
        context: RoutingContext,
        *,
        bot: Any | None = None,
        logger: "LoggerService | None" = None,
    ) -> None:
        self.raw = raw
        self.shape = shape
        self.context = context
        self.bot = bot
        self.logger = logger
        self.guild = getattr(raw, "guild", None)
        self.channel = getattr(raw, "channel", None)
        self.content = getattr(raw, "content", None) or ""
        self.locale = _locale(raw, self.guild)
        author = raw.user if shape is RawShape.INTERACTION else raw.author
        self.author = Actor.from_author(author, self.guild)
        self.command_options: dict[str, Any] = {}
        self.replied = False
        self._sent_reply: Any | None = None

        data = getattr(raw, "data", None) if shape is RawShape.INTERACTION else None
        data = data or {}
        self._interaction_type = getattr(raw, "type", None) if shape is RawShape.INTERACTION else None
        self._component_type = data.get("component_type")
        self._custom_id = data.get("custom_id") or None
        self._values = list(data.get("values") or [])
        self._slash_name = None
        if self._interaction_type == discord.InteractionType.application_command:
            if data.get("type", CHAT_INPUT_COMMAND) == CHAT_INPUT_COMMAND and data.get("name"):
                self._slash_name = str(data["name"]).lower()

    @classmethod
    def from_interaction(
        cls,
        interaction: Any,
        context: RoutingContext,
        *,
        bot: Any | None = None,
        logger: "LoggerService | None" = None,
    ) -> "NormalizedEvent":
        return cls(interaction, RawShape.INTERACTION, context, bot=bot, logger=logger)

    @classmethod
    async def from_message(
        cls,
        message: Any,
        context: RoutingContext,
        *,
        bot: Any | None = None,
        logger: "LoggerService | None" = None,
    ) -> "NormalizedEvent":
        if isinstance(message, discord.PartialMessage):
            message = await message.fetch()
        return cls(message, RawShape.MESSAGE, context, bot=bot, logger=logger)

    @property
    def is_interaction(self) -> bool:
        return self.shape is RawShape.INTERACTION

    @property
    def is_message(self) -> bool:
        return self.shape is RawShape.MESSAGE

    @property
    def is_direct_message(self) -> bool:
        return self.guild is None

    @property
    def is_button_press(self) -> bool:
        return (
            self._interaction_type == discord.InteractionType.component
            and self._custom_id is not None
            and self._component_type in BUTTON_COMPONENT_TYPES
        )

    @property
    def button_id(self) -> str | None:
        return self._custom_id if self.is_button_press else None

    @property
    def is_select_menu_press(self) -> bool:
        return (
            self._interaction_type == discord.InteractionType.component
            and self._custom_id is not None
            and self._component_type in SELECT_COMPONENT_TYPES
        )

    @property
    def select_menu_id(self) -> str | None:
        return self._custom_id if self.is_select_menu_press else None

    @property
    def select_menu_values(self) -> list[str]:
        return list(self._values) if self.is_select_menu_press else []

    @property
    def select_menu_value(self) -> str | None:
        values = self.select_menu_values
        if len(values) > 1 and self.logger is not None:
            self.logger.warn("event.select_menu_multiple_values", select_menu=self.select_menu_id, count=len(values))
        return values[0] if values else None

    @property
    def is_slash_command(self) -> bool:
        return self._slash_name is not None

    @property
    def message_command_name(self) -> str | None:
        if not self.is_message or not self.context.prefix:
            return None
        if not self.content.startswith(self.context.prefix):
            return None
        tokens = self.content[len(self.context.prefix):].split()
        if not tokens:
            return None
        candidate = tokens[0].lower()
        return candidate if candidate in self.context.message_commands else None

    @property
    def is_message_command(self) -> bool:
        return self.message_command_name is not None

    @property
    def command_name(self) -> str | None:
        if self._slash_name is not None:
            return self._slash_name
        return self.message_command_name

    @property
    def is_mention_of_bot(self) -> bool:
        mentions = getattr(self.raw, "mentions", None) or []
        return any(str(user.id) == self.context.self_user_id for user in mentions)

    @property
    def is_name_mention(self) -> bool:
        name = self.context.self_username.lower()
        return bool(name) and name in self.content.lower()

    @property
    def is_directed_at_bot(self) -> bool:
        return self.is_mention_of_bot or self.is_name_mention

    @property
    def is_from_bot(self) -> bool:
        return self.author.is_bot

    @property
    def is_from_self(self) -> bool:
        return self.author.user_id == self.context.self_user_id

    @property
    def event_kind(self) -> str | None:
        return classify(self)

    @property
    def raw_id(self) -> Any:
        return getattr(self.raw, "id", None)

    def describe(self) -> dict[str, Any]:
        return {
            "shape": self.shape.value,
            "id": self.raw_id,
            "kind": self.event_kind,
            "author_id": self.author.user_id,
            "guild_id": getattr(self.guild, "id", None),
            "channel_id": getattr(self.channel, "id", None),
            "content": self.content[:200],
            "options": sorted(self.command_options),
        }

    def where(self) -> str:
        if self.is_direct_message:
            return "in DM"
        return f"in channel {getattr(self.guild, 'name', '?')}/{getattr(self.channel, 'name', '?')}"

    async def defer(self, *, ephemeral: bool = False) -> None:
        if not self.is_interaction:
            return
        response = self.raw.response
        if not response.is_done():
            await response.defer(ephemeral=ephemeral)

    async def reply(
        self,
        content: str | None = None,
        *,
        view: discord.ui.View | None = None,
        embeds: Sequence[discord.Embed] | None = None,
        ephemeral: bool = False,
    ) -> str:
        """Deliver a reply: direct reply, then edit of the existing reply, then follow-up.

        Returns the name of the strategy that worked. Raises ReplyDeliveryError
        when none did.
        """
        payload = _payload(content, view, embeds)
        failures: list[tuple[str, BaseException]] = []
        for name, attempt in self._reply_strategies(payload, ephemeral):
            try:
                sent = await attempt()
            except Exception as exc:  # noqa: BLE001
                failures.append((name, exc))
                if self.logger is not None:
                    self.logger.warn("reply.strategy_failed", strategy=name, event_id=self.raw_id, error=exc)
                continue
            if sent is not None:
                self._sent_reply = sent
            self.replied = True
            return name
        raise ReplyDeliveryError(f"failed to reply to {self.shape.value} {self.raw_id}", failures)

    async def follow_up(
        self,
        content: str | None = None,
        *,
        view: discord.ui.View | None = None,
        embeds: Sequence[discord.Embed] | None = None,
        ephemeral: bool = False,
    ) -> str:
        if not self.replied:
            return await self.reply(content, view=view, embeds=embeds, ephemeral=ephemeral)
        payload = _payload(content, view, embeds)
        if self.is_interaction:
            await self.raw.followup.send(ephemeral=ephemeral, **payload)
        else:
            await self.channel.send(**payload)
        return "follow_up"

    def _reply_strategies(
        self, payload: dict[str, Any], ephemeral: bool
    ) -> list[tuple[str, Callable[[], Awaitable[Any]]]]:
        raw = self.raw
        if self.is_interaction:
            return [
                ("reply", lambda: raw.response.send_message(ephemeral=ephemeral, **payload)),
                ("edit", lambda: raw.edit_original_response(**payload)),
                ("follow_up", lambda: raw.followup.send(ephemeral=ephemeral, **payload)),
            ]

        async def edit_previous() -> Any:
            if self._sent_reply is None:
                raise LookupError("nothing has been sent yet for this message")
            return await self._sent_reply.edit(**payload)

        return [
            ("reply", lambda: raw.reply(**payload)),
            ("edit", edit_previous),
            ("follow_up", lambda: raw.channel.send(**payload)),
        ]

    async def join_voice_channel(self, name_or_id: str) -> tuple[Any, Any]:
        if self.guild is None or not isinstance(name_or_id, str):
            raise ValueError("joining a voice channel needs a guild and a channel name or id")
        channel = await discord_utils.get_channel(self.guild, name_or_id)
        if channel is None:
            raise LookupError(f"channel {name_or_id!r} not found in guild {self.guild.name!r}")
        existing = getattr(self.guild, "voice_client", None)
        if existing is not None:
            if existing.channel is None or existing.channel.id != channel.id:
                await existing.move_to(channel)
            return channel, existing
        voice = await channel.connect()
        return channel, voice

    async def get_role(self, name_or_id: str, guild: Any | None = None) -> Any | None:
        return await discord_utils.get_role(guild or self.guild, name_or_id)

    async def get_channel(self, name_or_id: str, guild: Any | None = None) -> Any | None:
        return await discord_utils.get_channel(guild or self.guild, name_or_id)

    async def get_user(self, user_id: str | int, guild: Any | None = None) -> Actor:
        return await discord_utils.get_user(guild or self.guild, user_id)

    async def get_members_by_role(
        self, name_or_id: str, guild: Any | None = None, *, as_actors: bool = True
    ) -> list[Any]:
        return await discord_utils.get_members_by_role(guild or self.guild, name_or_id, as_actors=as_actors)


def _payload(
    content: str | None, view: discord.ui.View | None, embeds: Sequence[discord.Embed] | None
) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    if content is not None:
        payload["content"] = content
    if view is not None:
        payload["view"] = view
    if embeds:
        payload["embeds"] = list(embeds)
    return payload


def _locale(raw: Any, guild: Any | None) -> str:
    for candidate in (
        getattr(raw, "locale", None),
        getattr(raw, "guild_locale", None),
        getattr(guild, "preferred_locale", None),
    ):
        if candidate:
            return str(candidate)
    return "default"
