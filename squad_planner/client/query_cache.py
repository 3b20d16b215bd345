"""
Application-scoped reactive query cache for the client context.

Entries are keyed by tuples (see query_keys) and hold JSON-shaped data. Reads
are public. Writes are package-internal: only the cache bridge (hydration) and
the optimistic mutation engine call the underscored write methods.

Ordering rules:

- every write and every invalidation bumps the entry's ``version``;
- a fetch remembers the version it started at and only writes its result if
  the version is unchanged, otherwise the result is dropped and the current
  cached value is returned;
- a speculative mutation stamps the entries it touches with its sequence
  number and keeps its snapshot on the entry until it settles;
- a failed mutation whose stamp is still on the entry restores its snapshot
  and hands the stamp back to the mutation it superseded;
- a failed mutation that a newer, still pending mutation has overwritten
  passes its snapshot on to that mutation instead, so if the newer one also
  fails the entry ends at the value from before either began.

So a late response can never overwrite a later invalidation or a later
mutation's speculative value, and overlapping failures unwind to the last
value no mutation was speculating about.
"""

import asyncio
import copy
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

from squad_planner.client.query_keys import QueryKey, as_key, matches

logger = logging.getLogger(__name__)

Listener = Callable[[QueryKey, Any], None]


@dataclass
class QueryEntry:
    key: QueryKey
    data: Any = None
    has_data: bool = False
    updated_at: float = 0.0
    invalidated: bool = False
    version: int = 0
    mutation_seq: int = 0
    pending: Dict[int, "EntrySnapshot"] = field(default_factory=dict, repr=False)
    fetch: Optional[asyncio.Future] = field(default=None, repr=False)
    fetch_version: int = -1

    def fetch_in_flight(self) -> bool:
        return self.fetch is not None and not self.fetch.done() and self.fetch_version == self.version


@dataclass(frozen=True)
class EntrySnapshot:
    existed: bool
    has_data: bool
    data: Any
    updated_at: float
    invalidated: bool
    mutation_seq: int = 0


class QueryCache:
    def __init__(self, stale_time: float = 30.0, clock: Callable[[], float] = time.monotonic):
        self.stale_time = stale_time
        self._clock = clock
        self._entries: Dict[QueryKey, QueryEntry] = {}
        self._listeners: List[Listener] = []
        self._mutation_seq = 0

    # Reads

    def get_query_data(self, key: Iterable[str]) -> Any:
        entry = self._entries.get(as_key(key))
        return entry.data if entry is not None and entry.has_data else None

    def has_query(self, key: Iterable[str]) -> bool:
        entry = self._entries.get(as_key(key))
        return entry is not None and entry.has_data

    def is_stale(self, key: Iterable[str]) -> bool:
        entry = self._entries.get(as_key(key))
        if entry is None or not entry.has_data or entry.invalidated:
            return True
        return self._clock() - entry.updated_at >= self.stale_time

    def keys(self) -> List[QueryKey]:
        return list(self._entries)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener(key, data)`` whenever an entry's data changes; returns an unsubscribe function"""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    async def fetch_query(self, key: Iterable[str], fetcher: Callable[[], Awaitable[Any]]) -> Any:
        """Fresh cached data, else the in-flight fetch for this key, else a new fetch"""
        key = as_key(key)
        entry = self._entry(key)
        if entry.has_data and not self.is_stale(key):
            return entry.data
        if not entry.fetch_in_flight():
            entry.fetch_version = entry.version
            entry.fetch = asyncio.ensure_future(self._run_fetch(entry, fetcher, entry.version))
        return await asyncio.shield(entry.fetch)

    async def _run_fetch(self, entry: QueryEntry, fetcher: Callable[[], Awaitable[Any]], started_at: int) -> Any:
        data = await fetcher()
        if self._entries.get(entry.key) is not entry:
            logger.debug(f"Query {entry.key} was removed while fetching, result not cached")
            return data
        if entry.version != started_at:
            logger.debug(f"Dropping superseded result for {entry.key}")
            return entry.data
        self._write(entry.key, data)
        return data

    # Invalidation

    def invalidate_queries(self, prefix: Iterable[str]) -> int:
        """Mark matching entries stale; in-flight fetches for them can no longer write"""
        matched = self._matching(prefix)
        for entry in matched:
            entry.invalidated = True
            entry.version += 1
        if matched:
            logger.debug(f"Invalidated {len(matched)} queries under {as_key(prefix)}")
        return len(matched)

    def cancel_queries(self, prefix: Iterable[str]) -> int:
        """Supersede in-flight fetches for matching entries without marking them stale"""
        cancelled = 0
        for entry in self._matching(prefix):
            if entry.fetch_in_flight():
                entry.version += 1
                cancelled += 1
        return cancelled

    def remove_queries(self, prefix: Iterable[str]) -> int:
        matched = self._matching(prefix)
        for entry in matched:
            del self._entries[entry.key]
            self._notify(entry.key, None)
        return len(matched)

    def clear(self) -> None:
        self._entries.clear()

    # Package-internal writes

    def _write(self, key: Iterable[str], data: Any) -> None:
        entry = self._entry(as_key(key))
        entry.data = data
        entry.has_data = True
        entry.updated_at = self._clock()
        entry.invalidated = False
        entry.version += 1
        self._notify(entry.key, data)

    def _next_mutation_seq(self) -> int:
        self._mutation_seq += 1
        return self._mutation_seq

    def _begin_mutation(
        self,
        keys: Iterable[Iterable[str]],
        seq: int,
        updater: Callable[[QueryKey, Any], Any],
    ) -> Dict[QueryKey, EntrySnapshot]:
        """Snapshot, then speculatively update, every affected entry. Synchronous.

        If ``updater`` raises, every entry touched so far is restored before
        the error propagates.
        """
        snapshots: Dict[QueryKey, EntrySnapshot] = {}
        try:
            for raw_key in keys:
                key = as_key(raw_key)
                if key in snapshots:
                    continue
                existing = self._entries.get(key)
                entry = existing or self._entry(key)
                snapshot = EntrySnapshot(
                    existed=existing is not None,
                    has_data=entry.has_data,
                    data=copy.deepcopy(entry.data),
                    updated_at=entry.updated_at,
                    invalidated=entry.invalidated,
                    mutation_seq=entry.mutation_seq,
                )
                snapshots[key] = snapshot
                entry.pending[seq] = snapshot
                # Supersedes any in-flight fetch for this entry
                entry.version += 1
                entry.mutation_seq = seq
                if entry.has_data:
                    entry.data = updater(key, entry.data)
                    self._notify(key, entry.data)
        except Exception:
            self._restore(snapshots, seq)
            raise
        return snapshots

    def _restore(self, snapshots: Dict[QueryKey, EntrySnapshot], seq: int) -> List[QueryKey]:
        """Roll back mutation ``seq`` on every entry that still holds its snapshot"""
        restored = []
        for key in snapshots:
            entry = self._entries.get(key)
            if entry is None or seq not in entry.pending:
                continue
            snapshot = entry.pending.pop(seq)
            if entry.mutation_seq != seq:
                newer = [pending_seq for pending_seq in entry.pending if pending_seq > seq]
                if newer:
                    # The next pending mutation now rolls back to where this one started
                    entry.pending[min(newer)] = snapshot
                else:
                    logger.debug(f"Not rolling back {key}: a later mutation already succeeded")
                continue
            if not snapshot.existed:
                del self._entries[key]
                self._notify(key, None)
                restored.append(key)
                continue
            entry.data = copy.deepcopy(snapshot.data)
            entry.has_data = snapshot.has_data
            entry.updated_at = snapshot.updated_at
            entry.invalidated = snapshot.invalidated
            entry.mutation_seq = snapshot.mutation_seq
            entry.version += 1
            self._notify(key, entry.data)
            restored.append(key)
        return restored

    def _release(self, keys: Iterable[QueryKey], seq: int) -> None:
        """Drop mutation ``seq``'s snapshots once its write has succeeded"""
        for key in keys:
            entry = self._entries.get(key)
            if entry is not None:
                entry.pending.pop(seq, None)

    # Internals

    def _entry(self, key: QueryKey) -> QueryEntry:
        entry = self._entries.get(key)
        if entry is None:
            entry = QueryEntry(key=key)
            self._entries[key] = entry
        return entry

    def _matching(self, prefix: Iterable[str]) -> List[QueryEntry]:
        prefix = as_key(prefix)
        return [entry for key, entry in self._entries.items() if matches(key, prefix)]

    def _notify(self, key: QueryKey, data: Any) -> None:
        for listener in list(self._listeners):
            try:
                listener(key, data)
            except Exception:
                logger.exception(f"Cache listener failed for {key}")
