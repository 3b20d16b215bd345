"""
Cache bridge between server-rendered pages and the client cache.

The server dehydrates each page section under the key the client would have
fetched it with; the client's PageHydrator seeds those entries once per page
instance. Later renders never re-seed, so fresher client data is not
overwritten by the page's original payload.
"""

import logging
from typing import Any, Iterable, List, Sequence, Union

from pydantic import BaseModel

from squad_planner.client.query_cache import QueryCache
from squad_planner.client.query_keys import as_key

logger = logging.getLogger(__name__)


class DehydratedQuery(BaseModel):
    """One cache entry as the client would have fetched it: same key, same JSON shape"""
    key: List[str]
    data: Any = None


def to_json(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json")
    if isinstance(data, (list, tuple)):
        return [to_json(item) for item in data]
    return data


def dehydrate(key: Sequence[str], data: Any) -> DehydratedQuery:
    # Empty lists and None are kept so the client does not refetch them on mount
    return DehydratedQuery(key=list(key), data=to_json(data))


class PageHydrator:
    def __init__(self, cache: QueryCache):
        self.cache = cache
        self._hydrated = False

    @property
    def hydrated(self) -> bool:
        return self._hydrated

    def hydrate(self, queries: Iterable[Union[DehydratedQuery, dict]]) -> bool:
        """Seed the cache from a page payload. Returns False when this page instance already did."""
        if self._hydrated:
            return False
        self._hydrated = True
        seeded = 0
        for query in queries:
            if isinstance(query, dict):
                query = DehydratedQuery(**query)
            self.cache._write(as_key(query.key), query.data)
            seeded += 1
        logger.debug(f"Seeded {seeded} queries from the page payload")
        return True
