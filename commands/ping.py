from __future__ import annotations

from aiohttp import web


async def ping(event) -> None:
    await event.reply(f"Pong! ({event.locale})", ephemeral=event.is_interaction)


async def status(request: web.Request) -> web.Response:
    bot = request["bot"]
    return web.json_response(
        {
            "user_id": request["user_id"],
            "guilds": len(bot.guilds),
            "latency_ms": round(bot.latency * 1000),
        }
    )


COMMAND = {
    "name": "ping",
    "description": "Check that the bot is alive",
    "command_handler": ping,
    "accept_dm": True,
    "api_routes": [{"method": "GET", "path": "/status", "handler": status}],
}
