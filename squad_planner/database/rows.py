"""
Raw row access over the Supabase client.

Every call returns a RowResult instead of raising: ``error`` is set on failure
and ``data`` is None/empty otherwise, so callers can tell a failed read apart
from a read that matched nothing. Transport failures are retried with
exponential backoff (reads get ``read_attempts``, writes ``write_attempts``).
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import httpx
from postgrest.exceptions import APIError
from supabase import Client

from squad_planner.core.errors import BackendError, TransportError

logger = logging.getLogger(__name__)

FILTER_OPS = ("eq", "neq", "gt", "gte", "lt", "lte", "in", "ilike")

TRANSPORT_EXCEPTIONS = (httpx.TransportError, ConnectionError, TimeoutError)


@dataclass
class RowError:
    code: Optional[str]
    message: str
    transport: bool = False


@dataclass
class RowResult:
    data: Any = None
    error: Optional[RowError] = None
    count: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_error(self, action: str) -> None:
        """Raise TransportError/BackendError for a failed result; internal details are logged only."""
        if self.error is None:
            return
        logger.error(f"Row access failed while trying to {action}: [{self.error.code}] {self.error.message}")
        if self.error.transport:
            raise TransportError()
        raise BackendError()


def parse_filter_key(key: str) -> Tuple[str, str]:
    """Split ``"scheduled_at__gte"`` into ``("scheduled_at", "gte")``; plain keys mean equality."""
    column, sep, op = key.rpartition("__")
    if sep and op in FILTER_OPS:
        return column, op
    return key, "eq"


def normalize_filters(filters: Optional[Dict[str, Any]]) -> List[Tuple[str, str, Any]]:
    normalized = []
    for key, value in (filters or {}).items():
        column, op = parse_filter_key(key)
        if op == "eq" and isinstance(value, (list, tuple, set)):
            op = "in"
        if op == "in":
            value = list(value)
        normalized.append((column, op, value))
    return normalized


def backoff_delay(attempt: int, base: float = 1.0, maximum: float = 10.0) -> float:
    """Delay before retry number ``attempt`` (0-based): base * 2**attempt, capped."""
    return min(base * (2 ** attempt), maximum)


class RowAccessor:
    def __init__(
        self,
        client: Client,
        read_attempts: int = 2,
        write_attempts: int = 1,
        base_delay: float = 1.0,
        max_delay: float = 10.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.read_attempts = max(1, read_attempts)
        self.write_attempts = max(1, write_attempts)
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._sleep = sleep

    # Reads

    def select(
        self,
        table: str,
        columns: str = "*",
        filters: Optional[Dict[str, Any]] = None,
        order: Optional[str] = None,
        desc: bool = False,
        limit: Optional[int] = None,
    ) -> RowResult:
        def run():
            query = self._apply_filters(self.client.table(table).select(columns), filters)
            if order:
                query = query.order(order, desc=desc)
            if limit is not None:
                query = query.limit(limit)
            response = query.execute()
            return RowResult(data=response.data or [])

        return self._execute(run, self.read_attempts, f"select {table}")

    def single(self, table: str, columns: str = "*", filters: Optional[Dict[str, Any]] = None) -> RowResult:
        """First matching row or None. Zero rows is an empty success, not an error."""
        def run():
            query = self._apply_filters(self.client.table(table).select(columns), filters)
            response = query.limit(1).execute()
            rows = response.data or []
            return RowResult(data=rows[0] if rows else None)

        return self._execute(run, self.read_attempts, f"read one {table}")

    def count(self, table: str, filters: Optional[Dict[str, Any]] = None) -> RowResult:
        def run():
            query = self._apply_filters(self.client.table(table).select("id", count="exact", head=True), filters)
            response = query.execute()
            total = response.count or 0
            return RowResult(data=total, count=total)

        return self._execute(run, self.read_attempts, f"count {table}")

    # Writes

    def insert(self, table: str, values: Any) -> RowResult:
        def run():
            response = self.client.table(table).insert(values).execute()
            return RowResult(data=response.data or [])

        return self._execute(run, self.write_attempts, f"insert {table}")

    def update(self, table: str, values: Dict[str, Any], filters: Dict[str, Any]) -> RowResult:
        def run():
            query = self._apply_filters(self.client.table(table).update(values), filters)
            response = query.execute()
            return RowResult(data=response.data or [])

        return self._execute(run, self.write_attempts, f"update {table}")

    def delete(self, table: str, filters: Dict[str, Any]) -> RowResult:
        def run():
            query = self._apply_filters(self.client.table(table).delete(), filters)
            response = query.execute()
            return RowResult(data=response.data or [])

        return self._execute(run, self.write_attempts, f"delete {table}")

    def rpc(self, function: str, params: Optional[Dict[str, Any]] = None) -> RowResult:
        def run():
            response = self.client.rpc(function, params or {}).execute()
            return RowResult(data=response.data)

        return self._execute(run, self.write_attempts, f"call {function}")

    # Internals

    @staticmethod
    def _apply_filters(query, filters: Optional[Dict[str, Any]]):
        for column, op, value in normalize_filters(filters):
            if op == "in":
                query = query.in_(column, value)
            else:
                query = getattr(query, op)(column, value)
        return query

    def _execute(self, run: Callable[[], RowResult], attempts: int, action: str) -> RowResult:
        last_error: Optional[RowError] = None
        for attempt in range(attempts):
            try:
                return run()
            except APIError as e:
                # The backend answered; retrying will not change the answer
                return RowResult(error=RowError(code=e.code, message=e.message or str(e)))
            except TRANSPORT_EXCEPTIONS as e:
                last_error = RowError(code=None, message=str(e), transport=True)
                if attempt + 1 < attempts:
                    delay = backoff_delay(attempt, self.base_delay, self.max_delay)
                    logger.warning(f"Transport failure during {action} (attempt {attempt + 1}/{attempts}), retrying in {delay}s: {e}")
                    self._sleep(delay)
        logger.error(f"Transport failure during {action}, giving up after {attempts} attempt(s): {last_error.message}")
        return RowResult(error=last_error)


def rows_of(result: RowResult, action: str) -> List[Dict[str, Any]]:
    """Rows of a successful result; raises for a failed one."""
    result.raise_for_error(action)
    return list(result.data or [])


def first_row(result: RowResult, action: str) -> Optional[Dict[str, Any]]:
    result.raise_for_error(action)
    data = result.data
    if isinstance(data, list):
        return data[0] if data else None
    return data


def ids_of(rows: Iterable[Dict[str, Any]], column: str = "id") -> List[str]:
    seen = []
    for row in rows:
        value = row.get(column)
        if value is not None and value not in seen:
            seen.append(value)
    return seen
