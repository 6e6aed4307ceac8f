from __future__ import annotations


async def greet_mention(event) -> None:
    await event.reply(f"Hi {event.author.display_name}!")


async def greet_dm(event) -> None:
    await event.reply("Hi! Try /ping in a server.")


COMMANDS = [
    {
        "name": "greetings",
        "description": "Answer mentions and direct messages",
        "mention_handler": greet_mention,
        "dm_handler": greet_dm,
    },
]
