import asyncio
import logging
from typing import Any, Callable

from squad_planner.client import query_keys
from squad_planner.client.hydration import to_json
from squad_planner.client.query_cache import QueryCache
from squad_planner.core.errors import NotFound
from squad_planner.modules.auth.schemas import Identity
from squad_planner.modules.profiles.service import ProfileService
from squad_planner.modules.sessions.service import SessionService
from squad_planner.modules.squads.service import SquadService

logger = logging.getLogger(__name__)


class ClientQueries:
    """Cached reads. Fetchers go through the same services the page loaders use."""

    def __init__(
        self,
        cache: QueryCache,
        squads: SquadService,
        sessions: SessionService,
        profiles: ProfileService,
        user: Identity,
    ):
        self.cache = cache
        self.squads_service = squads
        self.sessions_service = sessions
        self.profiles_service = profiles
        self.user = user

    async def _fetch(self, key, load: Callable[[], Any]) -> Any:
        async def fetcher():
            return to_json(await asyncio.to_thread(load))
        return await self.cache.fetch_query(key, fetcher)

    async def squads(self):
        return await self._fetch(
            query_keys.squads.list(),
            lambda: self.squads_service.list_squads(self.user.id),
        )

    async def squad(self, squad_id: str):
        return await self._fetch(
            query_keys.squads.detail(squad_id),
            lambda: self.squads_service.get_squad(squad_id),
        )

    async def squad_sessions(self, squad_id: str):
        return await self._fetch(
            query_keys.sessions.list(squad_id),
            lambda: self.sessions_service.list_for_squad(squad_id, self.user.id),
        )

    async def upcoming_sessions(self):
        return await self._fetch(
            query_keys.sessions.upcoming(),
            lambda: self.sessions_service.list_upcoming(self.user.id),
        )

    async def session(self, session_id: str):
        return await self._fetch(
            query_keys.sessions.detail(session_id),
            lambda: self.sessions_service.get_session(session_id, self.user.id),
        )

    async def profile(self):
        def load():
            try:
                return self.profiles_service.get_profile(self.user.id)
            except NotFound:
                return None
        return await self._fetch(query_keys.profile.current(), load)

    async def referral_stats(self):
        return await self._fetch(
            query_keys.referrals.stats(),
            lambda: self.profiles_service.referral_stats(self.user),
        )
