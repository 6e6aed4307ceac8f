from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from unicorn_bot.errors import ConfigurationError

TRUTHY = {"1", "true", "on", "yes"}


@dataclass(frozen=True)
class Settings:
    discord_token: str
    client_id: int | None = None
    client_secret: str = ""
    guild_id: int | None = None
    dev_mode: bool = False
    command_prefix: str = "!"
    commands_dir: Path | None = None
    auto_discover_commands: bool = False
    persistent_storage: bool = True
    store_path: Path = Path("data/unicorn_bot.msgpack")
    error_content: str = "Oh no..."
    hello_message: str = "I'm back!"
    service_messages_channel_id: int | None = None
    api_host: str = "0.0.0.0"
    api_port: int = 4242
    log_level: str = "info"
    presence_text: str = ""

    @staticmethod
    def load(path: Path = Path("bot.env"), environ: Mapping[str, str] | None = None) -> "Settings":
        values = _parse_env_file(path)
        env = os.environ if environ is None else environ
        for key in KNOWN_KEYS:
            if key in env:
                values[key] = env[key]

        token = values.get("DISCORD_TOKEN", "").strip()
        if not token:
            raise ConfigurationError("DISCORD_TOKEN is required (environment or bot.env).")
        prefix = values.get("PREFIX", "!")
        if not prefix.strip():
            raise ConfigurationError("PREFIX must not be empty.")
        dev_mode = _flag(values.get("DEV_MODE"))
        guild_id = _optional_int(values, "GUILD_ID")
        if dev_mode and guild_id is None:
            raise ConfigurationError("DEV_MODE needs GUILD_ID to register slash commands on one guild.")
        commands_dir = values.get("COMMANDS_DIR_PATH", "").strip()
        return Settings(
            discord_token=token,
            client_id=_optional_int(values, "CLIENT_ID"),
            client_secret=values.get("CLIENT_SECRET", "").strip(),
            guild_id=guild_id,
            dev_mode=dev_mode,
            command_prefix=prefix.strip(),
            commands_dir=Path(commands_dir) if commands_dir else None,
            auto_discover_commands=_flag(values.get("AUTO_DISCOVER_COMMANDS")),
            persistent_storage=not _flag(values.get("NO_PERSISTENT_STORAGE")),
            store_path=Path(values.get("STORE_PATH", "data/unicorn_bot.msgpack")),
            error_content=values.get("ERROR_CONTENT", "").strip() or "Oh no...",
            hello_message=values.get("HELLO_MESSAGE", "").strip() or "I'm back!",
            service_messages_channel_id=_optional_int(values, "SERVICE_MESSAGES_CHANNEL_ID"),
            api_host=values.get("API_HOST", "0.0.0.0").strip() or "0.0.0.0",
            api_port=_optional_int(values, "API_PORT") or 4242,
            log_level=values.get("LOG_LEVEL", "info").strip().lower() or "info",
            presence_text=values.get("PRESENCE_TEXT", "").strip(),
        )


KNOWN_KEYS = (
    "DISCORD_TOKEN",
    "CLIENT_ID",
    "CLIENT_SECRET",
    "GUILD_ID",
    "DEV_MODE",
    "PREFIX",
    "COMMANDS_DIR_PATH",
    "AUTO_DISCOVER_COMMANDS",
    "NO_PERSISTENT_STORAGE",
    "STORE_PATH",
    "ERROR_CONTENT",
    "HELLO_MESSAGE",
    "SERVICE_MESSAGES_CHANNEL_ID",
    "API_HOST",
    "API_PORT",
    "LOG_LEVEL",
    "PRESENCE_TEXT",
)


def _flag(raw: str | None) -> bool:
    return str(raw or "").strip().lower() in TRUTHY


def _optional_int(values: Mapping[str, str], key: str) -> int | None:
    raw = str(values.get(key, "")).strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}.") from exc


def _parse_env_file(path: Path) -> dict[str, str]:
    values: dict[str, str] = {}
    if not path.exists():
        return values
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        values[key.strip()] = value.strip()
    return values
