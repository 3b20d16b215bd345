import logging
from typing import Optional

from squad_planner.config import Settings, settings as default_settings
from squad_planner.core.errors import BackendFeatureUnavailable, NotFound
from squad_planner.database.rows import RowAccessor, RowError, first_row, rows_of
from squad_planner.modules.auth.schemas import Identity
from squad_planner.modules.gamification.levels import level_progress
from squad_planner.modules.gamification.referrals import (
    ReferralStats, referral_code_from_username, summarize_referrals,
)
from squad_planner.modules.gamification.streaks import flame_intensity, milestone_progress
from squad_planner.modules.profiles.schemas import MilestoneInfo, ProfileRecord, StreakSummary

logger = logging.getLogger(__name__)

REFERRAL_STATS_FUNCTION = "get_referral_stats"
# undefined_function from Postgres, and PostgREST's "not in schema cache"
MISSING_FUNCTION_CODES = frozenset({"42883", "PGRST202"})
# undefined_table
MISSING_TABLE_CODE = "42P01"


def is_missing_function(error: Optional[RowError]) -> bool:
    return error is not None and not error.transport and error.code in MISSING_FUNCTION_CODES


class ProfileService:
    def __init__(self, rows: RowAccessor, config: Settings = default_settings):
        self.rows = rows
        self.config = config

    def get_profile(self, user_id: str) -> ProfileRecord:
        row = first_row(self.rows.single("profiles", "*", {"id": user_id}), "read profile")
        if not row:
            raise NotFound("Profile not found")
        return ProfileRecord(**row)

    def streak_summary(self, user_id: str) -> StreakSummary:
        profile = self.get_profile(user_id)
        streak = max(0, profile.streak_days)
        upcoming = milestone_progress(streak)
        level = level_progress(profile.xp)
        return StreakSummary(
            streak_days=streak,
            flame_intensity=flame_intensity(streak),
            next_milestone=MilestoneInfo(
                days=upcoming.milestone.days,
                xp=upcoming.milestone.xp,
                label=upcoming.milestone.label,
            ),
            days_to_next_milestone=upcoming.days_remaining,
            milestone_progress=upcoming.progress,
            xp=profile.xp,
            level=level.level,
            level_progress=level.percent,
            xp_in_level=level.current,
            xp_for_next_level=level.needed,
        )

    def ensure_referral_code(self, user_id: str, current: Optional[str] = None) -> Optional[str]:
        """Return the user's referral code, deriving and storing one from the username if missing."""
        if current:
            return current
        profile = first_row(
            self.rows.single("profiles", "username, referral_code", {"id": user_id}),
            "read referral code",
        )
        if not profile:
            return None
        if profile.get("referral_code"):
            return profile["referral_code"]

        code = referral_code_from_username(profile.get("username"), self.config.referral_code_suffix)
        if code:
            result = self.rows.update("profiles", {"referral_code": code}, {"id": user_id})
            if result.error:
                # The code is still usable for this response; it is stored on the next attempt
                logger.warning(f"Could not store referral code for {user_id}: {result.error.message}")
        return code

    def _stats_from_function(self, user_id: str) -> ReferralStats:
        result = self.rows.rpc(REFERRAL_STATS_FUNCTION, {"p_user_id": user_id})
        if is_missing_function(result.error):
            raise BackendFeatureUnavailable()
        result.raise_for_error("compute referral stats")
        return ReferralStats(**(result.data or {}))

    def _stats_from_rows(self, user_id: str) -> ReferralStats:
        result = self.rows.select(
            "referrals", "id, status", {"referrer_id": user_id}, order="created_at", desc=True,
        )
        if result.error and result.error.code == MISSING_TABLE_CODE:
            logger.info("Referrals table missing, reporting empty referral stats")
            return summarize_referrals([])
        return summarize_referrals(rows_of(result, "list referrals"))

    def referral_stats(self, user: Identity) -> ReferralStats:
        try:
            stats = self._stats_from_function(user.id)
        except BackendFeatureUnavailable:
            logger.info(f"{REFERRAL_STATS_FUNCTION} is not deployed, computing referral stats from rows")
            stats = self._stats_from_rows(user.id)
        stats.referral_code = self.ensure_referral_code(user.id, stats.referral_code)
        return stats
