"""Input-keyed cache for metadata lookups.

Keys are the exact tuple of inputs a lookup depends on, e.g.
``("tables", 7, "sales")``. Entries are invalidated by key prefix when an
ancestor selection changes, so ``invalidate(("tables", 7))`` drops the
table lists of every schema on connection 7.
"""

from __future__ import annotations

import logging
from typing import Any, Hashable, Iterator, Tuple

logger = logging.getLogger(__name__)

CacheKey = Tuple[Hashable, ...]


class MetadataCache:
    """Results of successful metadata lookups, owned by one form session.

    Failed lookups are never stored.
    """

    def __init__(self) -> None:
        self._entries: dict[CacheKey, Any] = {}

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[CacheKey]:
        return iter(list(self._entries))

    def get(self, key: CacheKey, default: Any = None) -> Any:
        return self._entries.get(key, default)

    def put(self, key: CacheKey, value: Any) -> None:
        self._entries[key] = value

    def invalidate(self, prefix: CacheKey) -> int:
        """Drop every entry whose key starts with ``prefix``.

        Returns:
            Number of entries dropped
        """
        prefix = tuple(prefix)
        size = len(prefix)
        doomed = [key for key in self._entries if key[:size] == prefix]
        for key in doomed:
            del self._entries[key]
        if doomed:
            logger.debug("Invalidated %d cached lookups under %s", len(doomed), prefix)
        return len(doomed)

    def clear(self) -> None:
        self._entries.clear()
