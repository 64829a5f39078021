"""
Request-scoped query cache.

Entries are keyed by ``(query_id, params)``. After a mutation the owning
service calls ``invalidate`` with the query ids whose results it may have
changed, so the next read goes back to the server.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Hashable, Mapping
from typing import Any

from assetdesk.client.results import Result

logger = logging.getLogger(__name__)

CacheKey = tuple[str, Hashable]


def _freeze(value: Any) -> Hashable:
    if isinstance(value, Mapping):
        return tuple(sorted((str(k), _freeze(v)) for k, v in value.items()))
    if isinstance(value, (list, tuple, set, frozenset)):
        return tuple(_freeze(v) for v in value)
    return value


class QueryCache:
    def __init__(self) -> None:
        self._entries: dict[CacheKey, Result] = {}

    @staticmethod
    def key(query_id: str, params: Mapping[str, Any] | None = None) -> CacheKey:
        clean = {k: v for k, v in (params or {}).items() if v is not None}
        return query_id, _freeze(clean)

    def get(self, query_id: str, params: Mapping[str, Any] | None = None) -> Result | None:
        return self._entries.get(self.key(query_id, params))

    async def fetch(
        self,
        query_id: str,
        params: Mapping[str, Any] | None,
        loader: Callable[[], Awaitable[Result]],
    ) -> Result:
        """Return the cached result or run ``loader``; only successes are kept."""
        key = self.key(query_id, params)
        cached = self._entries.get(key)
        if cached is not None:
            return cached
        result = await loader()
        if result.ok:
            self._entries[key] = result
        return result

    def invalidate(self, *query_ids: str) -> int:
        doomed = [k for k in self._entries if k[0] in query_ids]
        for k in doomed:
            del self._entries[k]
        if doomed:
            logger.debug("Invalidated %d cached queries for %s", len(doomed), ", ".join(query_ids))
        return len(doomed)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
