"""Durable room store.

A store holds one string value under one key of a shared key-value area. Every
instance opened on the same key sees the others' writes through ``subscribe``.
"""
import asyncio
import json
import logging
import os
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Dict, Optional, Set, Union

import httpx

from .api_client import api_call
from .errors import TransportError
from .models.storage import StorageValue, StorageWrite

logger = logging.getLogger(__name__)


class _Any:
    def __repr__(self) -> str:
        return "ANY"


# Passed as ``expected`` for an unconditional write
ANY = _Any()


class StorageArea:
    """Key-value area of strings, optionally persisted to a JSON file."""

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path).expanduser() if path else None
        self._data: Dict[str, str] = self._load()
        self._watchers: Dict[str, Set[asyncio.Queue]] = {}

    def _load(self) -> Dict[str, str]:
        if self.path is None or not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text())
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable storage file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring storage file {self.path}: not an object")
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)}

    def _save(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(self._data))
        os.replace(tmp_path, self.path)

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: Optional[str], expected=ANY) -> bool:
        """Write ``value`` under ``key``; ``None`` removes it.

        With ``expected`` the write only happens if the key still holds that
        value. Returns False when that check fails.
        """
        current = self._data.get(key)
        if expected is not ANY and current != expected:
            logger.debug(f"Rejected write to {key}: value changed")
            return False

        if value is None:
            self._data.pop(key, None)
        else:
            self._data[key] = value
        self._save()

        if value != current:
            for queue in self._watchers.get(key, ()):
                queue.put_nowait(value)
        return True

    @asynccontextmanager
    async def watch(self, key: str) -> AsyncIterator[AsyncIterator[Optional[str]]]:
        """Yield an iterator over every later value written under ``key``."""
        queue: asyncio.Queue = asyncio.Queue()
        self._watchers.setdefault(key, set()).add(queue)

        async def updates():
            while True:
                yield await queue.get()

        try:
            yield updates()
        finally:
            self._watchers[key].discard(queue)


class RoomStore(ABC):
    """A single string value shared by every popup instance.

    ``value`` is the last value this instance observed, through a read, its own
    write, or its subscription. It is a cache; writers should read first.
    """

    def __init__(self, key: str = "rooms"):
        self.key = key
        self.value: Optional[str] = None
        self._observed = 0

    async def read(self) -> Optional[str]:
        self.value = await self._get()
        return self.value

    async def write(self, raw: Optional[str], expected=ANY) -> bool:
        """Store ``raw``. With ``expected``, only if nobody wrote in between.

        If the subscription saw a value while the write was in flight, that
        value stays cached; the subscription reports ``raw`` in its turn.
        """
        observed = self._observed
        written = await self._set(raw, expected)
        if written and self._observed == observed:
            self.value = raw
        return written

    @asynccontextmanager
    async def subscribe(self) -> AsyncIterator[AsyncIterator[Optional[str]]]:
        """Yield an iterator over values written by any instance."""
        async with self._watch() as updates:
            yield self._track(updates)

    async def _track(self, updates: AsyncIterator[Optional[str]]) -> AsyncIterator[Optional[str]]:
        async for raw in updates:
            self.value = raw
            self._observed += 1
            yield raw

    @abstractmethod
    async def _get(self) -> Optional[str]:
        ...

    @abstractmethod
    async def _set(self, raw: Optional[str], expected) -> bool:
        ...

    @abstractmethod
    def _watch(self):
        ...


class LocalRoomStore(RoomStore):
    """Store living in a storage area of this process."""

    def __init__(self, area: Optional[StorageArea] = None, key: str = "rooms"):
        super().__init__(key)
        self.area = area if area is not None else StorageArea()

    async def _get(self) -> Optional[str]:
        return self.area.get(self.key)

    async def _set(self, raw: Optional[str], expected) -> bool:
        return self.area.set(self.key, raw, expected)

    def _watch(self):
        return self.area.watch(self.key)


class RemoteRoomStore(RoomStore):
    """Store living in the background server's storage area."""

    def __init__(self, client: httpx.AsyncClient, key: str = "rooms"):
        super().__init__(key)
        self.client = client

    async def _get(self) -> Optional[str]:
        stored = await api_call(self.client, "GET", f"/storage/{self.key}", response_model=StorageValue)
        return stored.value

    async def _set(self, raw: Optional[str], expected) -> bool:
        if expected is ANY:
            request = StorageWrite(value=raw)
        else:
            request = StorageWrite(value=raw, compare=True, expected=expected)

        try:
            await api_call(self.client, "PUT", f"/storage/{self.key}", data=request)
        except TransportError as e:
            if e.status_code == 409:
                return False
            raise
        return True

    @asynccontextmanager
    async def _watch(self):
        try:
            async with self.client.stream("GET", f"/storage/{self.key}/events", timeout=None) as response:
                if response.status_code >= 400:
                    await response.aread()
                    raise TransportError(response.status_code, response.text or f"HTTP {response.status_code}")
                events = self._events(response)
                # First event is the value at subscription time
                try:
                    await events.__anext__()
                except StopAsyncIteration:
                    raise TransportError(0, "Storage event stream closed")
                yield events
        except httpx.HTTPError as e:
            raise TransportError(0, str(e)) from e

    async def _events(self, response: httpx.Response) -> AsyncIterator[Optional[str]]:
        try:
            async for line in response.aiter_lines():
                if not line.strip():
                    continue
                try:
                    event = StorageValue.model_validate_json(line)
                except ValueError:
                    logger.warning(f"Skipping malformed storage event: {line!r}")
                    continue
                yield event.value
        except httpx.HTTPError as e:
            raise TransportError(0, str(e)) from e
