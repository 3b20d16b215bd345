"""
Session status rules.

proposed -> confirmed -> completed, plus proposed/confirmed -> cancelled.
cancelled and completed are terminal. Only the creator confirms or cancels,
and ``completed`` is never written: it is read off the clock once a confirmed
session has ended.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, FrozenSet, Optional

from squad_planner.core.errors import Forbidden, InvalidTransition
from squad_planner.modules.sessions.schemas import SessionRecord

TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "proposed": frozenset({"confirmed", "cancelled"}),
    "confirmed": frozenset({"cancelled", "completed"}),
    "cancelled": frozenset(),
    "completed": frozenset(),
}

TERMINAL_STATUSES = frozenset({"cancelled", "completed"})
CREATOR_ONLY = frozenset({"confirmed", "cancelled"})
WRITABLE_STATUSES = frozenset({"proposed", "confirmed", "cancelled"})


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def session_end(session: SessionRecord) -> datetime:
    return _aware(session.scheduled_at) + timedelta(minutes=session.duration_minutes)


def effective_status(session: SessionRecord, now: Optional[datetime] = None) -> str:
    now = _aware(now or utcnow())
    if session.status == "confirmed" and now > session_end(session):
        return "completed"
    return session.status


def transition(session: SessionRecord, target: str, actor_id: str, now: Optional[datetime] = None) -> str:
    """Validate a user-triggered status change and return the status to persist."""
    if target not in WRITABLE_STATUSES:
        raise InvalidTransition(f"A session cannot be set to {target}")
    if target in CREATOR_ONLY and session.created_by != actor_id:
        raise Forbidden("Only the session creator can do this")
    current = effective_status(session, now)
    if not can_transition(current, target):
        raise InvalidTransition()
    return target


def ensure_editable(session: SessionRecord, now: Optional[datetime] = None) -> None:
    if effective_status(session, now) in TERMINAL_STATUSES:
        raise InvalidTransition("This session can no longer be edited")


def is_checkin_open(session: SessionRecord, now: Optional[datetime] = None, lead_minutes: int = 30) -> bool:
    """Check-in runs from ``lead_minutes`` before the start until the scheduled end, confirmed sessions only."""
    if session.status != "confirmed":
        return False
    now = _aware(now or utcnow())
    opens = _aware(session.scheduled_at) - timedelta(minutes=lead_minutes)
    return opens <= now <= session_end(session)
