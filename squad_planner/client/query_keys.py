"""
Cache keys shared by the page loaders and the client cache.

Keys are tuples; an entry matches a filter when the filter is a prefix of its
key, so ``squads.all`` covers every squad list and detail entry.
"""

from typing import Any, Sequence, Tuple

QueryKey = Tuple[str, ...]


def as_key(key: Sequence[Any]) -> QueryKey:
    """Normalise a key that went through JSON (a list) back into a tuple"""
    return tuple(str(part) for part in key)


def matches(key: QueryKey, prefix: QueryKey) -> bool:
    return key[:len(prefix)] == prefix


class squads:
    all: QueryKey = ("squads",)

    @staticmethod
    def list() -> QueryKey:
        return squads.all + ("list",)

    @staticmethod
    def detail(squad_id: str) -> QueryKey:
        return squads.all + ("detail", squad_id)

    @staticmethod
    def members(squad_id: str) -> QueryKey:
        return squads.detail(squad_id) + ("members",)


class sessions:
    all: QueryKey = ("sessions",)

    @staticmethod
    def list(squad_id: str) -> QueryKey:
        return sessions.all + ("list", squad_id)

    @staticmethod
    def upcoming() -> QueryKey:
        return sessions.all + ("upcoming",)

    @staticmethod
    def detail(session_id: str) -> QueryKey:
        return sessions.all + ("detail", session_id)


class profile:
    all: QueryKey = ("profile",)

    @staticmethod
    def current() -> QueryKey:
        return profile.all + ("current",)


class referrals:
    all: QueryKey = ("referrals",)

    @staticmethod
    def stats() -> QueryKey:
        return referrals.all + ("stats",)
