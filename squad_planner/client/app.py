from typing import Optional

from squad_planner.client.hydration import PageHydrator
from squad_planner.client.mutations import ClientMutations
from squad_planner.client.queries import ClientQueries
from squad_planner.client.query_cache import QueryCache
from squad_planner.config import Settings, settings as default_settings
from squad_planner.core.notifications import SystemMessenger
from squad_planner.database.rows import RowAccessor
from squad_planner.modules.auth.schemas import Identity
from squad_planner.modules.profiles.service import ProfileService
from squad_planner.modules.sessions.service import SessionService
from squad_planner.modules.squads.service import SquadService


class ClientApp:
    """Client context for one signed-in user: one cache, its queries and its mutations"""

    def __init__(
        self,
        rows: RowAccessor,
        user: Identity,
        config: Settings = default_settings,
        messenger: Optional[SystemMessenger] = None,
        cache: Optional[QueryCache] = None,
    ):
        self.user = user
        self.config = config
        self.cache = cache or QueryCache(stale_time=config.query_stale_seconds)

        messenger = messenger or SystemMessenger(rows)
        self.squads = SquadService(rows, messenger)
        self.sessions = SessionService(rows, messenger, config)
        self.profiles = ProfileService(rows, config)

        self.queries = ClientQueries(self.cache, self.squads, self.sessions, self.profiles, user)
        self.mutations = ClientMutations(self.cache, self.squads, self.sessions, user, config)

    def page(self) -> PageHydrator:
        """Hydrator for a newly mounted page instance"""
        return PageHydrator(self.cache)

    def sign_out(self) -> None:
        self.cache.clear()
