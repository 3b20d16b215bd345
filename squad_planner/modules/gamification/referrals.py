"""Referral stats computed from raw ``referrals`` rows.

Used when the ``get_referral_stats`` database function is not deployed, and
shaped exactly like that function's result.
"""

import logging
import re
from typing import Any, Dict, Iterable, Optional

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

REFERRAL_STATUSES = ("pending", "signed_up", "converted")
REFERRAL_XP = 100
RECRUITER_MILESTONES = (3, 10, 25)
REFERRAL_CODE_PREFIX_LENGTH = 12


class ReferralMilestones(BaseModel):
    recruiter_3: bool = False
    recruiter_10: bool = False
    recruiter_25: bool = False


class ReferralStats(BaseModel):
    referral_code: Optional[str] = None
    total_referrals: int = 0
    signed_up: int = 0
    converted: int = 0
    pending: int = 0
    total_xp_earned: int = 0
    milestones: ReferralMilestones = Field(default_factory=ReferralMilestones)

    class Config:
        from_attributes = True

    @field_validator("total_referrals", "signed_up", "converted", "pending", "total_xp_earned", mode="before")
    @classmethod
    def _zero_when_null(cls, value):
        return 0 if value is None else value

    @field_validator("milestones", mode="before")
    @classmethod
    def _no_milestones_when_null(cls, value):
        return ReferralMilestones() if value is None else value


def referral_code_from_username(username: Optional[str], suffix: str) -> Optional[str]:
    if not username:
        return None
    compact = re.sub(r"\s+", "", username)[:REFERRAL_CODE_PREFIX_LENGTH]
    if not compact:
        return None
    return compact.upper() + suffix


def recruiter_milestones(successful: int) -> ReferralMilestones:
    return ReferralMilestones(**{f"recruiter_{n}": successful >= n for n in RECRUITER_MILESTONES})


def summarize_referrals(rows: Optional[Iterable[Dict[str, Any]]], referral_code: Optional[str] = None) -> ReferralStats:
    """Totals per status; a referral counts as a success once the invitee signed up."""
    counts = {status: 0 for status in REFERRAL_STATUSES}
    total = 0
    for row in rows or []:
        total += 1
        status = row.get("status")
        if status in counts:
            counts[status] += 1
        else:
            logger.warning(f"Ignoring referral {row.get('id')} with unknown status {status!r}")

    successful = counts["signed_up"] + counts["converted"]
    return ReferralStats(
        referral_code=referral_code,
        total_referrals=total,
        signed_up=counts["signed_up"],
        converted=counts["converted"],
        pending=counts["pending"],
        total_xp_earned=successful * REFERRAL_XP,
        milestones=recruiter_milestones(successful),
    )
