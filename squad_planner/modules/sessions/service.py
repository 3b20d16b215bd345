import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional

from squad_planner.config import Settings, settings as default_settings
from squad_planner.core.errors import BackendError, CheckinClosed, Conflict, Forbidden, NotFound
from squad_planner.core.notifications import SystemMessenger
from squad_planner.database.rows import RowAccessor, first_row, ids_of, rows_of
from squad_planner.modules.auth.schemas import Identity
from squad_planner.modules.sessions import lifecycle
from squad_planner.modules.sessions.aggregation import build_session_view
from squad_planner.modules.sessions.schemas import (
    CheckinRecord, RsvpRecord, SessionCreate, SessionRecord, SessionUpdate, SessionView,
)

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"


class SessionService:
    def __init__(
        self,
        rows: RowAccessor,
        messenger: Optional[SystemMessenger] = None,
        config: Settings = default_settings,
    ):
        self.rows = rows
        self.messenger = messenger or SystemMessenger(None)
        self.config = config

    # Reads

    def get_session_record(self, session_id: str) -> SessionRecord:
        row = first_row(self.rows.single("sessions", "*", {"id": session_id}), "read session")
        if not row:
            raise NotFound("Session not found")
        return SessionRecord(**row)

    def _rsvps_by_session(self, session_ids: List[str]) -> Dict[str, List[RsvpRecord]]:
        rows = rows_of(
            self.rows.select("session_rsvps", "*", {"session_id": session_ids}),
            "list rsvps",
        )
        grouped: Dict[str, List[RsvpRecord]] = defaultdict(list)
        for row in rows:
            grouped[row["session_id"]].append(RsvpRecord(**row))
        return grouped

    def _checkins_by_session(self, session_ids: List[str]) -> Dict[str, List[CheckinRecord]]:
        rows = rows_of(
            self.rows.select("session_checkins", "*", {"session_id": session_ids}),
            "list checkins",
        )
        grouped: Dict[str, List[CheckinRecord]] = defaultdict(list)
        for row in rows:
            grouped[row["session_id"]].append(CheckinRecord(**row))
        return grouped

    def _views(self, session_rows: List[dict], user_id: Optional[str]) -> List[SessionView]:
        if not session_rows:
            return []
        records = [SessionRecord(**row) for row in session_rows]
        session_ids = [r.id for r in records]
        rsvps = self._rsvps_by_session(session_ids)
        checkins = self._checkins_by_session(session_ids)
        return [
            build_session_view(r, rsvps.get(r.id, []), checkins.get(r.id, []), user_id)
            for r in records
        ]

    def list_for_squad(self, squad_id: str, user_id: Optional[str]) -> List[SessionView]:
        """All sessions of a squad in chronological order, with RSVP counts"""
        sessions = rows_of(
            self.rows.select("sessions", "*", {"squad_id": squad_id}, order="scheduled_at"),
            "list squad sessions",
        )
        return self._views(sessions, user_id)

    def list_upcoming(self, user_id: str, now: Optional[datetime] = None, limit: Optional[int] = None) -> List[SessionView]:
        """Upcoming sessions across every squad the user belongs to"""
        memberships = rows_of(
            self.rows.select("squad_members", "squad_id", {"user_id": user_id}),
            "list memberships",
        )
        squad_ids = ids_of(memberships, "squad_id")
        if not squad_ids:
            return []
        now = now or lifecycle.utcnow()
        sessions = rows_of(
            self.rows.select(
                "sessions", "*",
                {"squad_id": squad_ids, "scheduled_at__gte": now.isoformat()},
                order="scheduled_at",
                limit=limit or self.config.upcoming_sessions_limit,
            ),
            "list upcoming sessions",
        )
        return self._views(sessions, user_id)

    def get_session(self, session_id: str, user_id: Optional[str]) -> SessionView:
        """Single session with RSVPs, check-ins and attendance rate"""
        record = self.get_session_record(session_id)
        rsvps = rows_of(
            self.rows.select("session_rsvps", "*", {"session_id": session_id}),
            "list session rsvps",
        )
        checkins = rows_of(
            self.rows.select("session_checkins", "*", {"session_id": session_id}),
            "list session checkins",
        )
        return build_session_view(
            record,
            [RsvpRecord(**r) for r in rsvps],
            [CheckinRecord(**c) for c in checkins],
            user_id,
        )

    # Writes

    def create_session(self, session_data: SessionCreate, user: Identity) -> SessionView:
        """Create a proposed session; the creator is answered present automatically"""
        row = first_row(self.rows.insert("sessions", {
            "squad_id": session_data.squad_id,
            "title": session_data.title,
            "game": session_data.game,
            "scheduled_at": session_data.scheduled_at.isoformat(),
            "created_by": user.id,
            "status": "proposed",
            "duration_minutes": session_data.duration_minutes or self.config.default_session_duration_minutes,
            "auto_confirm_threshold": session_data.auto_confirm_threshold or self.config.default_auto_confirm_threshold,
        }), "create session")
        if not row:
            raise BackendError("Could not create the session")
        record = SessionRecord(**row)

        rsvp_row = first_row(self.rows.insert("session_rsvps", {
            "session_id": record.id,
            "user_id": user.id,
            "response": "present",
            "responded_at": lifecycle.utcnow().isoformat(),
        }), "answer creator rsvp")
        rsvp = RsvpRecord(**rsvp_row) if rsvp_row else RsvpRecord(session_id=record.id, user_id=user.id, response="present")
        return build_session_view(record, [rsvp], [], user.id)

    def update_session(self, session_id: str, changes: SessionUpdate, user: Identity) -> SessionRecord:
        """Explicit edit of time, duration or title; creator only, not on finished sessions"""
        record = self.get_session_record(session_id)
        if record.created_by != user.id:
            raise Forbidden("Only the session creator can edit it")
        lifecycle.ensure_editable(record)

        update_data = changes.model_dump(exclude_none=True)
        if not update_data:
            return record
        if "scheduled_at" in update_data:
            update_data["scheduled_at"] = update_data["scheduled_at"].isoformat()
        update_data["updated_at"] = lifecycle.utcnow().isoformat()

        row = first_row(self.rows.update("sessions", update_data, {"id": session_id}), "update session")
        if not row:
            raise NotFound("Session not found")
        return SessionRecord(**row)

    def respond(self, session_id: str, response: str, user: Identity) -> RsvpRecord:
        """Record the caller's answer; a second answer overwrites the first"""
        record = self.get_session_record(session_id)
        lifecycle.ensure_editable(record)
        responded_at = lifecycle.utcnow().isoformat()

        existing = first_row(
            self.rows.single("session_rsvps", "id", {"session_id": session_id, "user_id": user.id}),
            "read rsvp",
        )
        if existing:
            row = first_row(self.rows.update(
                "session_rsvps",
                {"response": response, "responded_at": responded_at},
                {"id": existing["id"]},
            ), "update rsvp")
        else:
            row = first_row(self.rows.insert("session_rsvps", {
                "session_id": session_id,
                "user_id": user.id,
                "response": response,
                "responded_at": responded_at,
            }), "create rsvp")

        self.messenger.rsvp_recorded(record.squad_id, self._username(user), record.title, response)
        if row:
            return RsvpRecord(**row)
        return RsvpRecord(session_id=session_id, user_id=user.id, response=response)

    def _username(self, user: Identity) -> str:
        result = self.rows.single("profiles", "username", {"id": user.id})
        if result.error:
            logger.warning(f"Could not read username for {user.id}: {result.error.message}")
            return user.display_name
        return (result.data or {}).get("username") or user.display_name

    def check_in(
        self,
        session_id: str,
        user: Identity,
        status: str = "present",
        now: Optional[datetime] = None,
    ) -> CheckinRecord:
        record = self.get_session_record(session_id)
        if not lifecycle.is_checkin_open(record, now, self.config.checkin_lead_minutes):
            raise CheckinClosed()

        existing = first_row(
            self.rows.single("session_checkins", "id", {"session_id": session_id, "user_id": user.id}),
            "read checkin",
        )
        if existing:
            raise Conflict("You have already checked in")

        result = self.rows.insert("session_checkins", {
            "session_id": session_id,
            "user_id": user.id,
            "status": status,
            "checked_at": (now or lifecycle.utcnow()).isoformat(),
        })
        if result.error and result.error.code == UNIQUE_VIOLATION:
            raise Conflict("You have already checked in")
        row = first_row(result, "create checkin")
        if row:
            return CheckinRecord(**row)
        return CheckinRecord(session_id=session_id, user_id=user.id, status=status)

    def _set_status(self, session_id: str, target: str, user: Identity, now: Optional[datetime]) -> SessionRecord:
        record = self.get_session_record(session_id)
        new_status = lifecycle.transition(record, target, user.id, now)
        row = first_row(self.rows.update(
            "sessions",
            {"status": new_status, "updated_at": lifecycle.utcnow().isoformat()},
            {"id": session_id},
        ), f"set session {target}")
        if not row:
            raise NotFound("Session not found")
        return SessionRecord(**row)

    def confirm(self, session_id: str, user: Identity, now: Optional[datetime] = None) -> SessionRecord:
        record = self._set_status(session_id, "confirmed", user, now)
        self.messenger.session_confirmed(record.squad_id, record.title, record.scheduled_at)
        return record

    def cancel(self, session_id: str, user: Identity, now: Optional[datetime] = None) -> SessionRecord:
        return self._set_status(session_id, "cancelled", user, now)
