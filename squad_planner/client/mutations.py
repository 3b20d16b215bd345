"""
Client mutations with their speculative cache updates.

The updaters at the top of this module are pure: they take the cached JSON
value and return a new one without touching the input. Session updaters
rebuild views through the aggregation functions, so a speculative session
has exactly the shape a refetch would produce.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

from squad_planner.client import query_keys
from squad_planner.client.hydration import to_json
from squad_planner.client.optimistic import OptimisticMutation, optimistic_id
from squad_planner.client.query_cache import QueryCache
from squad_planner.config import Settings, settings as default_settings
from squad_planner.modules.auth.schemas import Identity
from squad_planner.modules.sessions.aggregation import build_session_view
from squad_planner.modules.sessions.lifecycle import utcnow
from squad_planner.modules.sessions.schemas import (
    CheckinRecord, RsvpRecord, SessionCreate, SessionRecord, SessionUpdate,
)
from squad_planner.modules.sessions.service import SessionService
from squad_planner.modules.squads.schemas import SquadCreate, SquadUpdate
from squad_planner.modules.squads.service import SquadService

logger = logging.getLogger(__name__)


# Pure cache updaters

def remove_squad(squads: Optional[List[dict]], squad_id: str) -> List[dict]:
    return [squad for squad in squads or [] if squad.get("id") != squad_id]


def append_session(sessions: Optional[List[dict]], session: dict) -> List[dict]:
    updated = list(sessions or []) + [session]
    # sorted() is stable, so sessions at the same time keep their order
    return sorted(updated, key=lambda s: s.get("scheduled_at") or "")


def _map_session(cached: Any, session_id: str, change: Callable[[dict], dict]) -> Any:
    """Apply ``change`` to the session with ``session_id`` in a detail entry or a list entry"""
    if isinstance(cached, list):
        return [change(s) if s.get("id") == session_id else s for s in cached]
    if isinstance(cached, dict) and cached.get("id") == session_id:
        return change(cached)
    return cached


def rebuild_session(session: dict, rsvps: List[dict], user_id: str) -> dict:
    view = build_session_view(
        SessionRecord(**session),
        [RsvpRecord(**r) for r in rsvps],
        [CheckinRecord(**c) for c in session.get("checkins") or []],
        user_id,
    )
    return to_json(view)


def apply_rsvp(cached: Any, session_id: str, user_id: str, response: str) -> Any:
    def change(session: dict) -> dict:
        rsvps = [r for r in session.get("rsvps") or [] if r.get("user_id") != user_id]
        rsvps.append({
            "session_id": session_id,
            "user_id": user_id,
            "response": response,
            "responded_at": utcnow().isoformat(),
        })
        return rebuild_session(session, rsvps, user_id)
    return _map_session(cached, session_id, change)


def apply_session_edit(cached: Any, session_id: str, changes: Dict[str, Any]) -> Any:
    return _map_session(cached, session_id, lambda session: {**session, **changes})


def optimistic_session(data: SessionCreate, user: Identity, config: Settings = default_settings) -> dict:
    """A temporary session as the server would return it, with the creator answered present"""
    now = utcnow()
    record = SessionRecord(
        id=optimistic_id(),
        squad_id=data.squad_id,
        title=data.title,
        game=data.game,
        scheduled_at=data.scheduled_at,
        duration_minutes=data.duration_minutes or config.default_session_duration_minutes,
        status="proposed",
        created_by=user.id,
        auto_confirm_threshold=data.auto_confirm_threshold or config.default_auto_confirm_threshold,
        created_at=now,
    )
    rsvp = RsvpRecord(session_id=record.id, user_id=user.id, response="present", responded_at=now)
    return to_json(build_session_view(record, [rsvp], [], user.id))


def _session_keys(session_id: str, squad_id: str) -> list:
    return [
        query_keys.sessions.detail(session_id),
        query_keys.sessions.list(squad_id),
        query_keys.sessions.upcoming(),
    ]


class ClientMutations:
    def __init__(
        self,
        cache: QueryCache,
        squads: SquadService,
        sessions: SessionService,
        user: Identity,
        config: Settings = default_settings,
    ):
        self.cache = cache
        self.squads = squads
        self.sessions = sessions
        self.user = user
        self.config = config

    def _mutation(self, call: Callable[..., Any], **options) -> OptimisticMutation:
        async def mutation_fn(variables):
            return await asyncio.to_thread(call, variables)
        return OptimisticMutation(self.cache, mutation_fn, **options)

    # Squads

    async def create_squad(self, squad_data: SquadCreate):
        mutation = self._mutation(
            lambda data: self.squads.create_squad(data, self.user),
            invalidate_keys=[query_keys.squads.all],
        )
        return await mutation.execute(squad_data)

    async def join_squad(self, invite_code: str) -> str:
        # No speculative phase: nothing is known about the squad until the code is checked
        mutation = self._mutation(
            lambda code: self.squads.join_squad(code, self.user),
            invalidate_keys=[query_keys.squads.all],
        )
        return await mutation.execute(invite_code)

    async def leave_squad(self, squad_id: str) -> None:
        mutation = self._mutation(
            lambda sid: self.squads.leave_squad(sid, self.user),
            query_keys=[query_keys.squads.list()],
            update_cache=lambda old, sid, key: remove_squad(old, sid),
            invalidate_keys=[query_keys.squads.all, query_keys.sessions.all],
        )
        await mutation.execute(squad_id)

    async def update_squad(self, squad_id: str, squad_data: SquadUpdate):
        mutation = self._mutation(
            lambda data: self.squads.update_squad(squad_id, data, self.user),
            invalidate_keys=[query_keys.squads.all],
        )
        return await mutation.execute(squad_data)

    async def delete_squad(self, squad_id: str) -> None:
        mutation = self._mutation(
            lambda sid: self.squads.delete_squad(sid, self.user),
            invalidate_keys=[query_keys.squads.all, query_keys.sessions.all],
        )
        await mutation.execute(squad_id)

    # Sessions

    async def create_session(self, session_data: SessionCreate):
        temporary = optimistic_session(session_data, self.user, self.config)
        mutation = self._mutation(
            lambda data: self.sessions.create_session(data, self.user),
            query_keys=[query_keys.sessions.list(session_data.squad_id)],
            update_cache=lambda old, data, key: append_session(old, temporary),
            invalidate_keys=[query_keys.sessions.list(session_data.squad_id), query_keys.sessions.upcoming()],
        )
        return await mutation.execute(session_data)

    async def respond(self, session_id: str, squad_id: str, response: str):
        keys = _session_keys(session_id, squad_id)
        mutation = self._mutation(
            lambda answer: self.sessions.respond(session_id, answer, self.user),
            query_keys=keys,
            update_cache=lambda old, answer, key: apply_rsvp(old, session_id, self.user.id, answer),
            invalidate_keys=keys,
        )
        return await mutation.execute(response)

    async def update_session(self, session_id: str, squad_id: str, changes: SessionUpdate):
        keys = _session_keys(session_id, squad_id)
        edits = changes.model_dump(mode="json", exclude_none=True)
        mutation = self._mutation(
            lambda update: self.sessions.update_session(session_id, update, self.user),
            query_keys=keys,
            update_cache=lambda old, update, key: apply_session_edit(old, session_id, edits),
            invalidate_keys=keys,
        )
        return await mutation.execute(changes)

    async def check_in(self, session_id: str, squad_id: str, status: str = "present"):
        mutation = self._mutation(
            lambda checkin_status: self.sessions.check_in(session_id, self.user, checkin_status),
            invalidate_keys=_session_keys(session_id, squad_id),
        )
        return await mutation.execute(status)

    async def confirm(self, session_id: str, squad_id: str):
        mutation = self._mutation(
            lambda sid: self.sessions.confirm(sid, self.user),
            invalidate_keys=_session_keys(session_id, squad_id),
        )
        return await mutation.execute(session_id)

    async def cancel(self, session_id: str, squad_id: str):
        mutation = self._mutation(
            lambda sid: self.sessions.cancel(sid, self.user),
            invalidate_keys=_session_keys(session_id, squad_id),
        )
        return await mutation.execute(session_id)
