"""Pull-side query cache.

Keys are tuples whose first element names the query, e.g.
("issues", project_id) or ("issue", issue_id). Invalidation works on the
name, so one event can stale every variant of a query at once.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Hashable

QueryKey = tuple[Hashable, ...]


@dataclass
class _Entry:
    value: Any
    stale: bool = False


class QueryCache:
    def __init__(self):
        self._entries: dict[QueryKey, _Entry] = {}

    async def get(self, key: QueryKey, fetch: Callable[[], Awaitable[Any]]) -> Any:
        """Return the cached value, calling `fetch` when missing or stale."""
        entry = self._entries.get(key)
        if entry is not None and not entry.stale:
            return entry.value
        value = await fetch()
        self._entries[key] = _Entry(value)
        return value

    def peek(self, key: QueryKey) -> Any:
        entry = self._entries.get(key)
        return entry.value if entry is not None else None

    def is_stale(self, key: QueryKey) -> bool:
        """Missing keys count as stale: the next read will fetch."""
        entry = self._entries.get(key)
        return entry is None or entry.stale

    def invalidate(self, name: str) -> int:
        """Mark every entry of query `name` stale. Returns how many."""
        count = 0
        for key, entry in self._entries.items():
            if key and key[0] == name and not entry.stale:
                entry.stale = True
                count += 1
        return count

    def invalidate_all(self) -> None:
        for entry in self._entries.values():
            entry.stale = True

    def __contains__(self, key: QueryKey) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
