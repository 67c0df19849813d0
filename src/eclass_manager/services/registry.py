"""Registry of announcement messages that accept subscription reactions."""

import asyncio
from collections.abc import AsyncIterator, Hashable, Iterable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID


class ReactionMessageRegistry(Protocol):
    """Tracks which announcement messages map to a subscribable class."""

    def add(self, message_id: str, class_id: UUID) -> None:
        """Register an announcement message for a class."""

    def remove(self, message_id: str) -> None:
        """Forget an announcement message."""

    def get(self, message_id: str) -> UUID | None:
        """Return the class bound to a message, if registered."""


@dataclass
class InMemoryReactionMessageRegistry(ReactionMessageRegistry):
    """In-memory registry rebuilt from planned classes at startup."""

    _entries: dict[str, UUID]

    def __init__(self) -> None:
        self._entries = {}

    def add(self, message_id: str, class_id: UUID) -> None:
        self._entries[message_id] = class_id

    def remove(self, message_id: str) -> None:
        self._entries.pop(message_id, None)

    def get(self, message_id: str) -> UUID | None:
        return self._entries.get(message_id)

    def replace_all(self, entries: Iterable[tuple[str, UUID]]) -> None:
        """Replace every registered message at once."""
        self._entries = dict(entries)


@dataclass
class KeyedLocks:
    """Serializes coroutines working on the same key, usually a class id."""

    _locks: dict[Hashable, asyncio.Lock]
    _holders: dict[Hashable, int]

    def __init__(self) -> None:
        self._locks = {}
        self._holders = {}

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        """Hold the lock for a key, dropping it once nobody waits on it."""
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._holders[key] = self._holders.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[key] -= 1
            if not self._holders[key]:
                self._holders.pop(key, None)
                self._locks.pop(key, None)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._locks
