"""
Three-phase optimistic mutations over the QueryCache.

1. begin: synchronously snapshot every affected entry and apply the
   speculative update, before the write is sent. If the update itself
   raises, the cache is restored and the write is never sent.
2. on failure: restore the snapshots exactly and raise MutationError with a
   short user-facing message. Overlapping failures unwind together to the
   value from before the oldest of them began.
3. always: invalidate the dependent keys so the next read refetches
   authoritative data.

A mutation is never cancelled. If the caller stops waiting, the write still
runs to completion and its phases 2 and 3 still happen.
"""

import asyncio
import logging
import secrets
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union

from squad_planner.client.query_cache import EntrySnapshot, QueryCache
from squad_planner.client.query_keys import QueryKey, as_key
from squad_planner.core.errors import AppError

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "Connection error. Try again."
OPTIMISTIC_PREFIX = "optimistic-"

KeySpec = Union[Sequence[QueryKey], Callable[..., Sequence[QueryKey]], None]


def optimistic_id() -> str:
    """Temporary id for a row that only exists in the cache until the server answers"""
    return f"{OPTIMISTIC_PREFIX}{int(time.time() * 1000)}-{secrets.token_hex(4)}"


def is_optimistic_id(value: Any) -> bool:
    return isinstance(value, str) and value.startswith(OPTIMISTIC_PREFIX)


class MutationError(Exception):
    """A failed mutation, carrying a message that is safe to show"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


@dataclass
class MutationContext:
    seq: int
    variables: Any
    snapshots: Dict[QueryKey, EntrySnapshot] = field(default_factory=dict)

    @property
    def keys(self) -> List[QueryKey]:
        return list(self.snapshots)


class OptimisticMutation:
    def __init__(
        self,
        cache: QueryCache,
        mutation_fn: Callable[[Any], Awaitable[Any]],
        query_keys: KeySpec = None,
        update_cache: Optional[Callable[[Any, Any, QueryKey], Any]] = None,
        invalidate_keys: KeySpec = None,
        error_message: Optional[str] = None,
    ):
        """
        ``query_keys(variables)`` names the entries ``update_cache(old, variables, key)``
        rewrites speculatively; ``invalidate_keys(variables, result)`` names the
        prefixes marked stale once the write settles. Both may also be plain lists.
        """
        self.cache = cache
        self.mutation_fn = mutation_fn
        self.query_keys = query_keys
        self.update_cache = update_cache
        self.invalidate_keys = invalidate_keys
        self.error_message = error_message or DEFAULT_ERROR_MESSAGE

    @staticmethod
    def _keys(spec: KeySpec, *args) -> List[QueryKey]:
        if spec is None:
            return []
        keys = spec(*args) if callable(spec) else spec
        return [as_key(key) for key in keys]

    def begin(self, variables: Any) -> MutationContext:
        """Phase 1. Runs synchronously so no render can see a half-applied update."""
        context = MutationContext(seq=self.cache._next_mutation_seq(), variables=variables)
        if self.update_cache is None:
            return context
        try:
            context.snapshots = self.cache._begin_mutation(
                self._keys(self.query_keys, variables),
                context.seq,
                lambda key, old: self.update_cache(old, variables, key),
            )
        except Exception as e:
            logger.error(f"Mutation {context.seq} could not update the cache: {e!r}")
            self.settle(context)
            raise MutationError(self.user_message(e)) from e
        return context

    def rollback(self, context: MutationContext) -> None:
        """Phase 2"""
        if context.snapshots:
            self.cache._restore(context.snapshots, context.seq)

    def settle(self, context: MutationContext, result: Any = None) -> None:
        """Phase 3"""
        for key in self._keys(self.invalidate_keys, context.variables, result):
            self.cache.invalidate_queries(key)

    def user_message(self, error: BaseException) -> str:
        if isinstance(error, AppError):
            return error.user_message
        return self.error_message

    def _finish(self, context: MutationContext, future: "asyncio.Future") -> None:
        error: Optional[BaseException] = None
        result = None
        if future.cancelled():
            error = asyncio.CancelledError()
        else:
            error = future.exception()
            if error is None:
                result = future.result()

        if error is not None:
            if isinstance(error, AppError):
                logger.info(f"Mutation {context.seq} rejected: {error.detail}")
            else:
                logger.error(f"Mutation {context.seq} failed: {error!r}")
            self.rollback(context)
        else:
            self.cache._release(context.keys, context.seq)
        self.settle(context, result)

    async def execute(self, variables: Any) -> Any:
        context = self.begin(variables)
        write = asyncio.ensure_future(self.mutation_fn(variables))
        # Registered before anyone awaits the write, so phases 2 and 3 finish before the caller resumes
        write.add_done_callback(lambda future: self._finish(context, future))
        try:
            return await asyncio.shield(write)
        except Exception as e:
            raise MutationError(self.user_message(e)) from e

    async def __call__(self, variables: Any) -> Any:
        return await self.execute(variables)
