from pydantic import BaseModel, field_validator
from typing import Optional
from datetime import datetime


class ProfileRecord(BaseModel):
    id: str
    username: str
    avatar_url: Optional[str] = None
    total_sessions: int = 0
    total_checkins: int = 0
    reliability_score: float = 0
    streak_days: int = 0
    xp: int = 0
    level: int = 1
    referral_code: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @field_validator("total_sessions", "total_checkins", "streak_days", "xp", "reliability_score", mode="before")
    @classmethod
    def _zero_when_null(cls, value):
        return 0 if value is None else value

    @field_validator("level", mode="before")
    @classmethod
    def _first_level_when_null(cls, value):
        return 1 if value is None else value


class MilestoneInfo(BaseModel):
    days: int
    xp: int
    label: str


class StreakSummary(BaseModel):
    streak_days: int
    flame_intensity: int
    next_milestone: MilestoneInfo
    days_to_next_milestone: int
    milestone_progress: int
    xp: int
    level: int
    level_progress: int
    xp_in_level: int
    xp_for_next_level: int
