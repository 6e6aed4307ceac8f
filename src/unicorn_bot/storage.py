from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import msgpack


DEFAULT_STORE: dict[str, Any] = {
    "meta": {"version": 1},
    "kv": {},
    "logs": [],
}


class MessagePackStore:
    """Key-value storage for commands, persisted as one msgpack file.

    With ``path=None`` the store lives in memory only and ``save`` is a no-op.
    """

    def __init__(self, path: Path | None) -> None:
        self.path = path
        if self.path is not None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = asyncio.Lock()
        self._dirty = False
        self.data: dict[str, Any] = _clone_defaults()

    @property
    def persistent(self) -> bool:
        return self.path is not None

    async def load(self) -> None:
        async with self._lock:
            if self.path is None:
                self.data = _clone_defaults()
                return
            if not self.path.exists():
                self.data = _clone_defaults()
                await self._save_unlocked()
                return
            raw = self.path.read_bytes()
            self.data = msgpack.unpackb(raw, raw=False)
            self._ensure_schema()

    async def autosave_loop(self) -> None:
        while True:
            await asyncio.sleep(5)
            if self._dirty:
                await self.save()

    async def save(self) -> None:
        async with self._lock:
            await self._save_unlocked()

    async def _save_unlocked(self) -> None:
        if self.path is None:
            self._dirty = False
            return
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        packed = msgpack.packb(self.data, use_bin_type=True)
        tmp.write_bytes(packed)
        tmp.replace(self.path)
        self._dirty = False

    def touch(self) -> None:
        self._dirty = True

    def get(self, key: str, default: Any = None) -> Any:
        return self.data["kv"].get(key, default)

    def set(self, key: str, value: Any) -> None:
        # Fails early on values msgpack cannot serialize.
        msgpack.packb(value, use_bin_type=True)
        self.data["kv"][key] = value
        self.touch()

    def delete(self, key: str) -> bool:
        existed = key in self.data["kv"]
        self.data["kv"].pop(key, None)
        if existed:
            self.touch()
        return existed

    def clear(self) -> None:
        self.data["kv"] = {}
        self.touch()

    def _ensure_schema(self) -> None:
        defaults = _clone_defaults()
        for key, value in defaults.items():
            if key not in self.data:
                self.data[key] = value
        self._dirty = True


def _clone_defaults() -> dict[str, Any]:
    return msgpack.unpackb(msgpack.packb(DEFAULT_STORE, use_bin_type=True), raw=False)
