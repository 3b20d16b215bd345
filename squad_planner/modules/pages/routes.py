from fastapi import APIRouter, Depends, Request

from squad_planner.core.dependencies import (
    get_auth_service, get_profile_service, get_session_service, get_squad_service,
)
from squad_planner.modules.auth.service import AuthService
from squad_planner.modules.pages.schemas import HomePage, SquadPage
from squad_planner.modules.pages.service import PageLoader
from squad_planner.modules.profiles.service import ProfileService
from squad_planner.modules.sessions.service import SessionService
from squad_planner.modules.squads.service import SquadService

router = APIRouter(prefix="/pages", tags=["pages"])


def get_page_loader(
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
    squads: SquadService = Depends(get_squad_service),
    sessions: SessionService = Depends(get_session_service),
    profiles: ProfileService = Depends(get_profile_service),
) -> PageLoader:
    return PageLoader(request, auth_service, squads, sessions, profiles)


@router.get("/home", response_model=HomePage)
async def home_page(loader: PageLoader = Depends(get_page_loader)):
    """Squads, upcoming sessions and profile in one round trip, plus their cache entries"""
    return await loader.home()


@router.get("/squads/{squad_id}", response_model=SquadPage)
async def squad_page(squad_id: str, loader: PageLoader = Depends(get_page_loader)):
    """Squad detail and its sessions, plus their cache entries"""
    return await loader.squad_page(squad_id)
