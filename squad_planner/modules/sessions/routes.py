from fastapi import APIRouter, Depends
from typing import List

from squad_planner.core.dependencies import get_current_user, get_session_service, require_squad_member
from squad_planner.modules.auth.schemas import Identity
from squad_planner.modules.sessions.schemas import (
    CheckinRecord, CheckinRequest, RsvpRecord, RsvpRequest, SessionCreate,
    SessionRecord, SessionUpdate, SessionView,
)
from squad_planner.modules.sessions.service import SessionService

router = APIRouter(prefix="/sessions", tags=["sessions"])


def _member_session(session_id: str, user: Identity, service: SessionService) -> SessionRecord:
    """Load a session and make sure the caller belongs to its squad"""
    record = service.get_session_record(session_id)
    require_squad_member(service.rows, record.squad_id, user)
    return record


@router.get("/upcoming", response_model=List[SessionView])
async def list_upcoming_sessions(
    user: Identity = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
):
    """Upcoming sessions across all of the caller's squads"""
    return service.list_upcoming(user.id)


@router.post("", response_model=SessionView, status_code=201)
async def create_session(
    session_data: SessionCreate,
    user: Identity = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
):
    """Propose a session in one of the caller's squads"""
    require_squad_member(service.rows, session_data.squad_id, user)
    return service.create_session(session_data, user)


@router.get("/{session_id}", response_model=SessionView)
async def get_session(
    session_id: str,
    user: Identity = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
):
    _member_session(session_id, user, service)
    return service.get_session(session_id, user.id)


@router.put("/{session_id}", response_model=SessionRecord)
async def update_session(
    session_id: str,
    changes: SessionUpdate,
    user: Identity = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
):
    """Edit time, duration or title (creator only)"""
    return service.update_session(session_id, changes, user)


@router.post("/{session_id}/rsvp", response_model=RsvpRecord)
async def respond_to_session(
    session_id: str,
    rsvp: RsvpRequest,
    user: Identity = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
):
    _member_session(session_id, user, service)
    return service.respond(session_id, rsvp.response, user)


@router.post("/{session_id}/checkin", response_model=CheckinRecord, status_code=201)
async def check_in(
    session_id: str,
    checkin: CheckinRequest,
    user: Identity = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
):
    _member_session(session_id, user, service)
    return service.check_in(session_id, user, checkin.status)


@router.post("/{session_id}/confirm", response_model=SessionRecord)
async def confirm_session(
    session_id: str,
    user: Identity = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
):
    """Confirm a proposed session (creator only)"""
    return service.confirm(session_id, user)


@router.post("/{session_id}/cancel", response_model=SessionRecord)
async def cancel_session(
    session_id: str,
    user: Identity = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
):
    """Cancel a session (creator only)"""
    return service.cancel(session_id, user)
