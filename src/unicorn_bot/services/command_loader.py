from __future__ import annotations

import ast
import importlib.util
import sys
from pathlib import Path
from typing import Any, Mapping

from unicorn_bot.errors import ConfigurationError
from unicorn_bot.services.logger_service import LoggerService

MAX_SOURCE_BYTES = 500 * 1024


def validate_command_source(source: str) -> tuple[bool, list[str]]:
    """Only checks the size and that the module parses."""
    if len(source.encode("utf-8")) > MAX_SOURCE_BYTES:
        return False, [f"source exceeds {MAX_SOURCE_BYTES} bytes"]
    try:
        ast.parse(source)
    except SyntaxError as exc:
        return False, [f"syntax error: {exc}"]
    return True, []


class CommandLoader:
    def __init__(self, logger: LoggerService) -> None:
        self.logger = logger

    def discover(self, directory: Path | str | None) -> list[Mapping[str, Any]]:
        if directory is None:
            self.logger.warn("commands.discovery_skipped", reason="no commands directory configured")
            return []
        base = Path(directory)
        if not base.is_dir():
            self.logger.warn("commands.discovery_skipped", reason="directory not found", path=str(base))
            return []
        self.logger.info("commands.discovering", path=str(base))
        found: list[Mapping[str, Any]] = []
        for path in sorted(base.glob("*.py")):
            if path.name.startswith("_"):
                continue
            found.extend(self.load_module(path))
        self.logger.info("commands.discovered", count=len(found), path=str(base))
        return found

    def load_module(self, path: Path) -> list[Mapping[str, Any]]:
        try:
            source = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigurationError(f"failed to read command module {path}: {exc}") from exc
        valid, errors = validate_command_source(source)
        if not valid:
            raise ConfigurationError(f"{path}: " + "; ".join(errors[:6]))

        module_name = f"unicorn_bot_commands.{path.stem}"
        spec = importlib.util.spec_from_file_location(module_name, path)
        if not spec or not spec.loader:
            raise ConfigurationError(f"failed to load command module spec for {path}")
        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except Exception as exc:  # noqa: BLE001
            sys.modules.pop(module_name, None)
            raise ConfigurationError(f"importing command module {path} failed: {exc}") from exc

        single = getattr(module, "COMMAND", None)
        many = getattr(module, "COMMANDS", None)
        if single is None and many is None:
            self.logger.warn("commands.module_without_exports", path=str(path))
            return []
        definitions: list[Any] = []
        if single is not None:
            definitions.append(single)
        if many is not None:
            if not isinstance(many, (list, tuple)):
                raise ConfigurationError(f"{path}: COMMANDS must be a list of command definitions")
            definitions.extend(many)
        for definition in definitions:
            if not isinstance(definition, Mapping):
                raise ConfigurationError(f"{path}: command definitions must be dicts")
        self.logger.debug("commands.module_loaded", path=str(path), count=len(definitions))
        return definitions
