"""
Server-side page loaders.

Each page fans out into independent section loaders that run concurrently.
Every loader asks for the caller's identity on its own; the request-scoped
identity cache makes sure only one check actually runs. Service calls are
blocking, so they run in worker threads.

Pages also return their sections in dehydrated form, under the same cache keys
the client uses, so the client can seed its cache instead of refetching.
"""

import asyncio
import logging
from typing import Callable, List, Optional, TypeVar

from fastapi import Request

from squad_planner.client import query_keys
from squad_planner.client.hydration import dehydrate
from squad_planner.core.dependencies import require_squad_member, resolve_identity
from squad_planner.core.errors import NotAuthenticated, NotFound
from squad_planner.modules.auth.schemas import Identity
from squad_planner.modules.auth.service import AuthService
from squad_planner.modules.pages.schemas import HomePage, SquadPage
from squad_planner.modules.profiles.schemas import ProfileRecord
from squad_planner.modules.profiles.service import ProfileService
from squad_planner.modules.sessions.schemas import SessionView
from squad_planner.modules.sessions.service import SessionService
from squad_planner.modules.squads.schemas import SquadDetail, SquadView
from squad_planner.modules.squads.service import SquadService

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PageLoader:
    def __init__(
        self,
        request: Request,
        auth_service: AuthService,
        squads: SquadService,
        sessions: SessionService,
        profiles: ProfileService,
    ):
        self.request = request
        self.auth_service = auth_service
        self.squads = squads
        self.sessions = sessions
        self.profiles = profiles

    async def current_user(self) -> Identity:
        user = await resolve_identity(self.request, self.auth_service)
        if user is None:
            raise NotAuthenticated()
        return user

    async def _as_user(self, load: Callable[[Identity], T]) -> T:
        user = await self.current_user()
        return await asyncio.to_thread(load, user)

    # Sections

    async def squad_list(self) -> List[SquadView]:
        return await self._as_user(lambda user: self.squads.list_squads(user.id))

    async def upcoming_sessions(self) -> List[SessionView]:
        return await self._as_user(lambda user: self.sessions.list_upcoming(user.id))

    async def profile(self) -> Optional[ProfileRecord]:
        def load(user: Identity) -> Optional[ProfileRecord]:
            try:
                return self.profiles.get_profile(user.id)
            except NotFound:
                return None
        return await self._as_user(load)

    async def membership(self, squad_id: str) -> Identity:
        return await self._as_user(lambda user: require_squad_member(self.squads.rows, squad_id, user))

    async def squad_detail(self, squad_id: str) -> SquadDetail:
        # Identity is still required so anonymous callers never reach the read
        return await self._as_user(lambda user: self.squads.get_squad(squad_id))

    async def squad_sessions(self, squad_id: str) -> List[SessionView]:
        return await self._as_user(lambda user: self.sessions.list_for_squad(squad_id, user.id))

    # Pages

    async def home(self) -> HomePage:
        squads, upcoming, profile = await asyncio.gather(
            self.squad_list(),
            self.upcoming_sessions(),
            self.profile(),
        )
        return HomePage(
            squads=squads,
            upcoming_sessions=upcoming,
            profile=profile,
            queries=[
                dehydrate(query_keys.squads.list(), squads),
                dehydrate(query_keys.sessions.upcoming(), upcoming),
                dehydrate(query_keys.profile.current(), profile),
            ],
        )

    async def squad_page(self, squad_id: str) -> SquadPage:
        _, squad, sessions = await asyncio.gather(
            self.membership(squad_id),
            self.squad_detail(squad_id),
            self.squad_sessions(squad_id),
        )
        return SquadPage(
            squad=squad,
            sessions=sessions,
            queries=[
                dehydrate(query_keys.squads.detail(squad_id), squad),
                dehydrate(query_keys.sessions.list(squad_id), sessions),
            ],
        )
