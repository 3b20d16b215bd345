from fastapi import APIRouter, Depends

from squad_planner.core.dependencies import get_current_user, get_profile_service
from squad_planner.modules.auth.schemas import Identity
from squad_planner.modules.gamification.referrals import ReferralStats
from squad_planner.modules.profiles.schemas import ProfileRecord, StreakSummary
from squad_planner.modules.profiles.service import ProfileService

router = APIRouter(prefix="/profiles", tags=["profiles"])


@router.get("/me", response_model=ProfileRecord)
async def get_my_profile(
    user: Identity = Depends(get_current_user),
    service: ProfileService = Depends(get_profile_service),
):
    return service.get_profile(user.id)


@router.get("/me/streak", response_model=StreakSummary)
async def get_my_streak(
    user: Identity = Depends(get_current_user),
    service: ProfileService = Depends(get_profile_service),
):
    """Streak, next milestone and level progress"""
    return service.streak_summary(user.id)


@router.get("/me/referrals", response_model=ReferralStats)
async def get_my_referrals(
    user: Identity = Depends(get_current_user),
    service: ProfileService = Depends(get_profile_service),
):
    """Referral totals, XP earned and recruiter milestones"""
    return service.referral_stats(user)
