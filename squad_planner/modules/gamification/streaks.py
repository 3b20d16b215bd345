"""Streak milestones, flame intensity and XP rewards. Pure and total over non-negative streaks."""

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class Milestone:
    days: int
    xp: int
    label: str


MILESTONES: Tuple[Milestone, ...] = (
    Milestone(7, 100, "1 week"),
    Milestone(14, 200, "2 weeks"),
    Milestone(30, 500, "1 month"),
    Milestone(60, 750, "2 months"),
    Milestone(100, 1000, "100 days"),
)

# Past the last milestone a smaller reward recurs every week
RECURRING_INTERVAL_DAYS = 7
RECURRING_XP = 50

# Lowest streak for intensity 1, 2, 3, 4
FLAME_BREAKPOINTS: Tuple[int, ...] = (3, 7, 14, 30)
MAX_FLAME_INTENSITY = 4


def _recurring(days: int) -> Milestone:
    return Milestone(days, RECURRING_XP, f"Week {days // RECURRING_INTERVAL_DAYS}")


def milestone_for(streak: int) -> Milestone:
    """Next milestone strictly after ``streak``."""
    streak = max(0, streak)
    for milestone in MILESTONES:
        if milestone.days > streak:
            return milestone
    next_days = (streak // RECURRING_INTERVAL_DAYS + 1) * RECURRING_INTERVAL_DAYS
    return _recurring(next_days)


def previous_milestone_days(streak: int) -> int:
    """Days of the last milestone reached at or before ``streak`` (0 if none)."""
    streak = max(0, streak)
    if streak >= MILESTONES[-1].days:
        return max(MILESTONES[-1].days, (streak // RECURRING_INTERVAL_DAYS) * RECURRING_INTERVAL_DAYS)
    reached = [m.days for m in MILESTONES if m.days <= streak]
    return reached[-1] if reached else 0


@dataclass(frozen=True)
class MilestoneProgress:
    milestone: Milestone
    days_remaining: int
    progress: int  # whole percent from the previous milestone to the next one


def milestone_progress(streak: int) -> MilestoneProgress:
    streak = max(0, streak)
    nxt = milestone_for(streak)
    start = previous_milestone_days(streak)
    span = nxt.days - start
    progress = (200 * (streak - start) + span) // (2 * span) if span > 0 else 0
    return MilestoneProgress(milestone=nxt, days_remaining=nxt.days - streak, progress=progress)


def flame_intensity(streak: int) -> int:
    intensity = 0
    for level, threshold in enumerate(FLAME_BREAKPOINTS, start=1):
        if streak >= threshold:
            intensity = level
    return min(intensity, MAX_FLAME_INTENSITY)


def xp_for(streak_day: int) -> int:
    """XP granted on reaching ``streak_day``."""
    for milestone in MILESTONES:
        if milestone.days == streak_day:
            return milestone.xp
    if streak_day > MILESTONES[-1].days and streak_day % RECURRING_INTERVAL_DAYS == 0:
        return RECURRING_XP
    return 0
