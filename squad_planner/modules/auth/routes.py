from fastapi import APIRouter, Depends

from squad_planner.core.dependencies import get_current_user
from squad_planner.modules.auth.schemas import Identity

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/me", response_model=Identity)
async def get_me(user: Identity = Depends(get_current_user)):
    """Identity behind the bearer token"""
    return user
