"""
Per-request identity deduplication.

A page request fans out into several loaders that all need to know who is
calling. The first loader starts the identity check; every other loader for
the same request awaits that same task, so exactly one check runs and all of
them observe the same identity or the same exception.

Entries are held in a WeakKeyDictionary keyed by a per-request token, so a
completed request's entry goes away with the request. Failures are not retried
here; the caller decides.
"""

import asyncio
import logging
import weakref
from typing import Any, Awaitable, Callable, Optional, TypeVar

from starlette.requests import HTTPConnection

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RequestKey:
    """Hashable, weak-referenceable stand-in for one inbound request."""
    __slots__ = ("__weakref__",)


def request_key(request: HTTPConnection) -> RequestKey:
    """Return the key for this request, creating it on first use.

    Starlette request objects are unhashable (they are Mappings), but
    ``request.state`` is backed by the ASGI scope, so the key stored there
    lives exactly as long as the request.
    """
    key = getattr(request.state, "identity_key", None)
    if key is None:
        key = RequestKey()
        request.state.identity_key = key
    return key


class IdentityCache:
    def __init__(self):
        self._pending: "weakref.WeakKeyDictionary[Any, asyncio.Future]" = weakref.WeakKeyDictionary()

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, key: Any) -> bool:
        return key in self._pending

    async def resolve(self, key: Any, check: Callable[[], Awaitable[T]]) -> T:
        pending = self._pending.get(key)
        if pending is None:
            logger.debug("Starting identity check for request")
            pending = asyncio.ensure_future(check())
            self._pending[key] = pending
        # One cancelled loader must not cancel the check the others are waiting on
        return await asyncio.shield(pending)

    def forget(self, key: Any) -> Optional[asyncio.Future]:
        return self._pending.pop(key, None)
