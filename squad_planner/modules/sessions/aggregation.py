"""
Derived views computed from raw rows.

Server loaders, client fetchers and speculative cache updates all build their
views through these functions, so the three paths cannot disagree on shape or
semantics. Everything here is pure.
"""

import logging
from typing import Any, Iterable, Optional, Sequence, Union

from squad_planner.modules.sessions.schemas import (
    RSVP_RESPONSES, CheckinRecord, RsvpCounts, RsvpRecord, SessionRecord, SessionView,
)
from squad_planner.modules.squads.schemas import SquadDetail, SquadMemberRecord, SquadRecord, SquadView

logger = logging.getLogger(__name__)


def _field(row: Any, name: str) -> Any:
    if isinstance(row, dict):
        return row.get(name)
    return getattr(row, name, None)


def count_responses(rsvps: Optional[Iterable[Any]]) -> RsvpCounts:
    """Partition responses into present/absent/maybe. Unknown values are logged and ignored."""
    counts = {value: 0 for value in RSVP_RESPONSES}
    for rsvp in rsvps or []:
        value = _field(rsvp, "response")
        if value in counts:
            counts[value] += 1
        else:
            logger.warning(f"Ignoring RSVP with unknown response {value!r} (session {_field(rsvp, 'session_id')})")
    return RsvpCounts(**counts)


def my_response(rsvps: Optional[Iterable[Any]], user_id: Optional[str]) -> Optional[str]:
    """The response recorded for ``user_id``, or None."""
    if not user_id:
        return None
    for rsvp in rsvps or []:
        if _field(rsvp, "user_id") == user_id:
            value = _field(rsvp, "response")
            return value if value in RSVP_RESPONSES else None
    return None


def member_count(memberships: Optional[Sequence[Any]], stored_count: Optional[int] = None) -> int:
    """Live membership rows win; the stored counter is only read when they are unavailable."""
    if memberships is not None:
        return len(memberships)
    return stored_count or 0


def attendance_rate(
    checkins: Union[int, Sequence[Any]],
    present_responses: Union[int, Sequence[Any]],
) -> int:
    """Check-ins as a whole percentage of present RSVPs, rounded half up; 0 when nobody said present."""
    checked = checkins if isinstance(checkins, int) else len(checkins)
    present = present_responses if isinstance(present_responses, int) else len(present_responses)
    if present <= 0:
        return 0
    return (200 * checked + present) // (2 * present)


def _record_fields(model: Any, record_type) -> dict:
    return {name: getattr(model, name) for name in record_type.model_fields}


def build_session_view(
    session: SessionRecord,
    rsvps: Optional[Sequence[RsvpRecord]],
    checkins: Optional[Sequence[CheckinRecord]] = None,
    user_id: Optional[str] = None,
) -> SessionView:
    rsvps = list(rsvps or [])
    checkins = list(checkins or [])
    counts = count_responses(rsvps)
    return SessionView(
        **_record_fields(session, SessionRecord),
        rsvps=rsvps,
        checkins=checkins,
        my_rsvp=my_response(rsvps, user_id),
        rsvp_counts=counts,
        attendance_rate=attendance_rate(len(checkins), counts.present),
    )


def build_squad_view(
    squad: SquadRecord,
    memberships: Optional[Sequence[Any]],
    stored_count: Optional[int] = None,
) -> SquadView:
    fields = _record_fields(squad, SquadRecord)
    fallback = stored_count if stored_count is not None else squad.member_count
    fields["member_count"] = member_count(memberships, fallback)
    return SquadView(**fields)


def build_squad_detail(squad: SquadRecord, members: Sequence[SquadMemberRecord]) -> SquadDetail:
    fields = _record_fields(squad, SquadRecord)
    fields["member_count"] = member_count(members, squad.member_count)
    return SquadDetail(**fields, members=list(members))
