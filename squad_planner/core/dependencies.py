"""
Core dependencies for identity resolution and squad access checks
"""

import asyncio
import logging
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.security.utils import get_authorization_scheme_param
from supabase import Client

from squad_planner.core.errors import Forbidden, NotAuthenticated
from squad_planner.core.identity import IdentityCache, request_key
from squad_planner.core.notifications import SystemMessenger
from squad_planner.database.rows import RowAccessor, first_row
from squad_planner.database.supabase_client import get_rows, get_service_rows, get_supabase
from squad_planner.modules.auth.schemas import Identity
from squad_planner.modules.auth.service import AuthService
from squad_planner.modules.profiles.service import ProfileService
from squad_planner.modules.sessions.service import SessionService
from squad_planner.modules.squads.service import SquadService

logger = logging.getLogger(__name__)


def get_auth_service(supabase: Client = Depends(get_supabase)) -> AuthService:
    return AuthService(supabase)


def bearer_token(request: Request) -> Optional[str]:
    """Access token from ``Authorization: Bearer ...``, or None."""
    scheme, token = get_authorization_scheme_param(request.headers.get("Authorization"))
    if scheme.lower() != "bearer" or not token:
        return None
    return token


def identity_cache_for(app: FastAPI) -> IdentityCache:
    cache = getattr(app.state, "identity_cache", None)
    if cache is None:
        cache = IdentityCache()
        app.state.identity_cache = cache
    return cache


async def resolve_identity(request: Request, auth_service: AuthService) -> Optional[Identity]:
    """Caller identity, checked at most once per request however many loaders ask."""
    token = bearer_token(request)
    cache = identity_cache_for(request.app)
    return await cache.resolve(
        request_key(request),
        lambda: asyncio.to_thread(auth_service.get_current_user, token),
    )


async def get_optional_user(
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
) -> Optional[Identity]:
    return await resolve_identity(request, auth_service)


async def get_current_user(user: Optional[Identity] = Depends(get_optional_user)) -> Identity:
    if user is None:
        raise NotAuthenticated()
    return user


def is_squad_member(rows: RowAccessor, squad_id: str, user_id: str) -> bool:
    membership = first_row(
        rows.single("squad_members", "id", {"squad_id": squad_id, "user_id": user_id}),
        "check squad membership",
    )
    return membership is not None


def require_squad_member(rows: RowAccessor, squad_id: str, user: Identity) -> Identity:
    if not is_squad_member(rows, squad_id, user.id):
        raise Forbidden("You must be a member of this squad")
    return user


def check_squad_member(
    squad_id: str,
    user: Identity = Depends(get_current_user),
    rows: RowAccessor = Depends(get_rows),
) -> Identity:
    """Route guard: caller must belong to the squad in the path"""
    return require_squad_member(rows, squad_id, user)


def get_messenger() -> SystemMessenger:
    # System messages are written with the service role so RLS on messages does not apply
    return SystemMessenger(get_service_rows())


def get_squad_service(
    rows: RowAccessor = Depends(get_rows),
    messenger: SystemMessenger = Depends(get_messenger),
) -> SquadService:
    return SquadService(rows, messenger)


def get_session_service(
    rows: RowAccessor = Depends(get_rows),
    messenger: SystemMessenger = Depends(get_messenger),
) -> SessionService:
    return SessionService(rows, messenger)


def get_profile_service(rows: RowAccessor = Depends(get_rows)) -> ProfileService:
    return ProfileService(rows)
