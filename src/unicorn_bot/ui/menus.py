from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import discord

BUTTONS_PER_ROW = 5
MAX_ROWS = 5
MAX_SELECT_OPTIONS = 25


@dataclass(frozen=True)
class MenuItem:
    id: str
    label: str
    description: str | None = None
    style: discord.ButtonStyle = discord.ButtonStyle.primary
    emoji: str | None = None
    url: str | None = None
    disabled: bool = False


def build_buttons_menu(
    items: Sequence[MenuItem],
    prefix: str,
    view: discord.ui.View | None = None,
) -> discord.ui.View:
    """Buttons five per row, custom id ``<prefix>-<item id>``.

    Falls back to a select menu named ``prefix`` when the buttons would need
    more rows than a message can carry.
    """
    view = view or discord.ui.View(timeout=None)
    first_row = _used_rows(view)
    rows_needed = (len(items) + BUTTONS_PER_ROW - 1) // BUTTONS_PER_ROW
    if first_row + rows_needed > MAX_ROWS:
        return build_select_menu(items, prefix, view=view)
    for position, item in enumerate(items):
        row = first_row + position // BUTTONS_PER_ROW
        if item.url:
            button = discord.ui.Button(
                style=discord.ButtonStyle.link,
                label=item.label,
                url=item.url,
                emoji=item.emoji,
                disabled=item.disabled,
                row=row,
            )
        else:
            button = discord.ui.Button(
                style=item.style,
                label=item.label,
                custom_id=f"{prefix}-{item.id}",
                emoji=item.emoji,
                disabled=item.disabled,
                row=row,
            )
        view.add_item(button)
    return view


def build_select_menu(
    items: Sequence[MenuItem],
    custom_id: str,
    placeholder: str = "Nothing selected",
    min_values: int = 1,
    max_values: int = 1,
    view: discord.ui.View | None = None,
) -> discord.ui.View:
    view = view or discord.ui.View(timeout=None)
    options = [
        discord.SelectOption(label=item.label, value=item.id, description=item.description)
        for item in items[:MAX_SELECT_OPTIONS]
    ]
    max_values = max(min_values, min(max_values, len(options) or 1))
    select = discord.ui.Select(
        custom_id=custom_id,
        placeholder=placeholder,
        min_values=min_values,
        max_values=max_values,
        options=options,
        row=_used_rows(view),
    )
    view.add_item(select)
    return view


def _used_rows(view: discord.ui.View) -> int:
    rows = [child.row for child in view.children if child.row is not None]
    return max(rows) + 1 if rows else 0
