from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable

from unicorn_bot.storage import MessagePackStore

LEVELS = {"debug": 10, "info": 20, "warn": 30, "error": 40}
HISTORY_LIMIT = 2000


class LoggerService:
    def __init__(self, store: MessagePackStore | None = None, *, level: str = "info") -> None:
        if level not in LEVELS:
            raise ValueError(f"unknown log level: {level}")
        self.store = store
        self.level = level
        self._listeners: list[Callable[[dict[str, object]], None]] = []

    def subscribe(self, listener: Callable[[dict[str, object]], None]) -> None:
        self._listeners.append(listener)

    def log(self, event: str, /, *, level: str = "info", **data: object) -> dict[str, object] | None:
        if LEVELS.get(level, 20) < LEVELS[self.level]:
            return None
        row: dict[str, object] = {
            "ts": datetime.now(tz=timezone.utc).isoformat(),
            "level": level,
            "event": event,
            "data": {key: _plain(value) for key, value in data.items()},
        }
        if self.store is not None:
            logs = self.store.data["logs"]
            logs.append(row)
            if len(logs) > HISTORY_LIMIT:
                del logs[: len(logs) - HISTORY_LIMIT]
            self.store.touch()
        print(f"[{row['ts']}] {level.upper()} {event} {row['data']}")
        for listener in self._listeners:
            try:
                listener(row)
            except Exception:  # noqa: BLE001
                continue
        return row

    def debug(self, event: str, /, **data: object) -> dict[str, object] | None:
        return self.log(event, level="debug", **data)

    def info(self, event: str, /, **data: object) -> dict[str, object] | None:
        return self.log(event, level="info", **data)

    def warn(self, event: str, /, **data: object) -> dict[str, object] | None:
        return self.log(event, level="warn", **data)

    def error(self, event: str, /, **data: object) -> dict[str, object] | None:
        return self.log(event, level="error", **data)


def _plain(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_plain(item) for item in value]
    if isinstance(value, dict):
        return {str(key): _plain(item) for key, item in value.items()}
    if isinstance(value, BaseException):
        return f"{type(value).__name__}: {value}"[:300]
    return str(value)
