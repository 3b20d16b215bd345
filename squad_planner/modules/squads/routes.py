from fastapi import APIRouter, Depends
from typing import List

from squad_planner.core.dependencies import (
    check_squad_member, get_current_user, get_session_service, get_squad_service,
)
from squad_planner.modules.auth.schemas import Identity
from squad_planner.modules.sessions.schemas import SessionView
from squad_planner.modules.sessions.service import SessionService
from squad_planner.modules.squads.schemas import (
    JoinResult, SquadCreate, SquadDetail, SquadJoin, SquadRecord, SquadUpdate, SquadView,
)
from squad_planner.modules.squads.service import SquadService

router = APIRouter(prefix="/squads", tags=["squads"])


@router.get("", response_model=List[SquadView])
async def list_squads(
    user: Identity = Depends(get_current_user),
    service: SquadService = Depends(get_squad_service),
):
    """Squads the caller belongs to, newest first"""
    return service.list_squads(user.id)


@router.post("", response_model=SquadView, status_code=201)
async def create_squad(
    squad_data: SquadCreate,
    user: Identity = Depends(get_current_user),
    service: SquadService = Depends(get_squad_service),
):
    """Create a squad; the caller becomes its owner"""
    return service.create_squad(squad_data, user)


@router.post("/join", response_model=JoinResult)
async def join_squad(
    join_data: SquadJoin,
    user: Identity = Depends(get_current_user),
    service: SquadService = Depends(get_squad_service),
):
    """Join a squad with its invite code"""
    return JoinResult(squad_id=service.join_squad(join_data.invite_code, user))


@router.get("/{squad_id}", response_model=SquadDetail)
async def get_squad(
    squad_id: str,
    user: Identity = Depends(check_squad_member),
    service: SquadService = Depends(get_squad_service),
):
    return service.get_squad(squad_id)


@router.put("/{squad_id}", response_model=SquadRecord)
async def update_squad(
    squad_id: str,
    squad_data: SquadUpdate,
    user: Identity = Depends(get_current_user),
    service: SquadService = Depends(get_squad_service),
):
    """Update squad (owner only)"""
    return service.update_squad(squad_id, squad_data, user)


@router.delete("/{squad_id}", status_code=204)
async def delete_squad(
    squad_id: str,
    user: Identity = Depends(get_current_user),
    service: SquadService = Depends(get_squad_service),
):
    """Delete squad (owner only)"""
    service.delete_squad(squad_id, user)
    return None


@router.delete("/{squad_id}/membership", status_code=204)
async def leave_squad(
    squad_id: str,
    user: Identity = Depends(get_current_user),
    service: SquadService = Depends(get_squad_service),
):
    service.leave_squad(squad_id, user)
    return None


@router.get("/{squad_id}/sessions", response_model=List[SessionView])
async def list_squad_sessions(
    squad_id: str,
    user: Identity = Depends(check_squad_member),
    service: SessionService = Depends(get_session_service),
):
    """Sessions of a squad in chronological order"""
    return service.list_for_squad(squad_id, user.id)
