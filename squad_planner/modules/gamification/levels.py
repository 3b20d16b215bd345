from dataclasses import dataclass
from typing import Tuple

# XP needed to reach level 1, 2, ... 20
LEVEL_THRESHOLDS: Tuple[int, ...] = (
    0, 100, 250, 500, 850,
    1300, 1900, 2600, 3500, 4600,
    6000, 7700, 9800, 12300, 15300,
    18800, 23000, 28000, 34000, 41000,
)
MAX_LEVEL = len(LEVEL_THRESHOLDS)


def level_for_xp(xp: int) -> int:
    for index in range(MAX_LEVEL - 1, -1, -1):
        if xp >= LEVEL_THRESHOLDS[index]:
            return index + 1
    return 1


@dataclass(frozen=True)
class LevelProgress:
    level: int
    current: int
    needed: int
    percent: int


def level_progress(xp: int) -> LevelProgress:
    """XP earned inside the current level against the XP that level spans. The top level reads 100%."""
    xp = max(0, xp)
    level = level_for_xp(xp)
    if level >= MAX_LEVEL:
        floor = LEVEL_THRESHOLDS[-2]
        needed = LEVEL_THRESHOLDS[-1] - floor
        return LevelProgress(level=level, current=needed, needed=needed, percent=100)

    floor = LEVEL_THRESHOLDS[level - 1]
    needed = LEVEL_THRESHOLDS[level] - floor
    current = xp - floor
    percent = min(100, (200 * current + needed) // (2 * needed))
    return LevelProgress(level=level, current=current, needed=needed, percent=percent)
