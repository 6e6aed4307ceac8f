"""Maps a normalized event to its canonical event-kind key.

Keys are ``button:<id>``, ``selectMenu:<id>``, ``slashCommand:<name>``,
``messageCommand:<name>``, ``mention``, ``directMessage`` and ``message``.
Structural interaction markers are checked before any textual heuristic, and
the first match wins.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from unicorn_bot.events import NormalizedEvent

BUTTON = "button"
SELECT_MENU = "selectMenu"
SLASH_COMMAND = "slashCommand"
MESSAGE_COMMAND = "messageCommand"
MENTION = "mention"
DIRECT_MESSAGE = "directMessage"
MESSAGE = "message"

ALL_KINDS = (BUTTON, SELECT_MENU, SLASH_COMMAND, MESSAGE_COMMAND, MENTION, DIRECT_MESSAGE, MESSAGE)
COMMAND_KINDS = frozenset({SLASH_COMMAND, MESSAGE_COMMAND})
IDENTIFIED_KINDS = frozenset({BUTTON, SELECT_MENU, SLASH_COMMAND, MESSAGE_COMMAND})


def event_key(kind: str, identifier: str | None = None) -> str:
    if kind in IDENTIFIED_KINDS:
        if not identifier:
            raise ValueError(f"{kind} keys need an identifier")
        return f"{kind}:{identifier}"
    if kind not in ALL_KINDS:
        raise ValueError(f"unknown event kind: {kind}")
    return kind


def split_key(key: str) -> tuple[str, str | None]:
    kind, sep, identifier = key.partition(":")
    return kind, (identifier if sep else None)


def classify(event: "NormalizedEvent") -> str | None:
    if event.is_button_press:
        return event_key(BUTTON, event.button_id)
    if event.is_select_menu_press:
        return event_key(SELECT_MENU, event.select_menu_id)
    if event.is_slash_command:
        return event_key(SLASH_COMMAND, event.command_name)
    if not event.is_message:
        # Autocomplete, modal submits and other interactions carry no routable text.
        return None
    if event.is_message_command:
        return event_key(MESSAGE_COMMAND, event.message_command_name)
    if event.is_directed_at_bot:
        return MENTION
    if event.is_direct_message:
        return DIRECT_MESSAGE
    return MESSAGE
