from __future__ import annotations

from pathlib import Path

import pytest

from unicorn_bot.config import Settings
from unicorn_bot.errors import ConfigurationError


def _write_env(tmp_path: Path, body: str) -> Path:
    path = tmp_path / "bot.env"
    path.write_text(body, encoding="utf-8")
    return path


def test_load_reads_the_env_file_with_defaults(tmp_path: Path) -> None:
    path = _write_env(
        tmp_path,
        "# local bot\nDISCORD_TOKEN=abc\nCLIENT_ID=42\nCOMMANDS_DIR_PATH=commands\nAUTO_DISCOVER_COMMANDS=yes\n",
    )
    settings = Settings.load(path, environ={})

    assert settings.discord_token == "abc"
    assert settings.client_id == 42
    assert settings.commands_dir == Path("commands")
    assert settings.auto_discover_commands is True
    assert settings.command_prefix == "!"
    assert settings.persistent_storage is True
    assert settings.error_content == "Oh no..."
    assert settings.api_port == 4242
    assert settings.dev_mode is False


def test_environment_overrides_the_file(tmp_path: Path) -> None:
    path = _write_env(tmp_path, "DISCORD_TOKEN=file\nPREFIX=?\n")
    settings = Settings.load(
        path,
        environ={"DISCORD_TOKEN": "env", "NO_PERSISTENT_STORAGE": "1", "LOG_LEVEL": "DEBUG", "UNRELATED": "x"},
    )
    assert settings.discord_token == "env"
    assert settings.command_prefix == "?"
    assert settings.persistent_storage is False
    assert settings.log_level == "debug"


def test_dev_mode_needs_a_guild(tmp_path: Path) -> None:
    path = _write_env(tmp_path, "DISCORD_TOKEN=abc\nDEV_MODE=true\n")
    with pytest.raises(ConfigurationError):
        Settings.load(path, environ={})
    settings = Settings.load(path, environ={"GUILD_ID": "1234"})
    assert settings.dev_mode is True
    assert settings.guild_id == 1234


@pytest.mark.parametrize(
    "environ",
    [
        {},
        {"DISCORD_TOKEN": "abc", "PREFIX": "   "},
        {"DISCORD_TOKEN": "abc", "CLIENT_ID": "not-a-number"},
    ],
)
def test_invalid_settings_are_rejected(tmp_path: Path, environ: dict) -> None:
    with pytest.raises(ConfigurationError):
        Settings.load(tmp_path / "missing.env", environ=environ)
