from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Literal
from datetime import datetime

RsvpResponse = Literal["present", "absent", "maybe"]
SessionStatus = Literal["proposed", "confirmed", "cancelled", "completed"]
CheckinStatus = Literal["present", "late", "noshow"]

RSVP_RESPONSES = ("present", "absent", "maybe")
DEFAULT_DURATION_MINUTES = 120
DEFAULT_AUTO_CONFIRM_THRESHOLD = 3


class SessionCreate(BaseModel):
    squad_id: str
    title: Optional[str] = None
    game: Optional[str] = None
    scheduled_at: datetime
    duration_minutes: Optional[int] = Field(None, gt=0, le=24 * 60)
    auto_confirm_threshold: Optional[int] = Field(None, ge=1)


class SessionUpdate(BaseModel):
    title: Optional[str] = None
    game: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    duration_minutes: Optional[int] = Field(None, gt=0, le=24 * 60)


class RsvpRequest(BaseModel):
    response: RsvpResponse


class CheckinRequest(BaseModel):
    status: CheckinStatus = "present"


class SessionRecord(BaseModel):
    id: str
    squad_id: str
    title: Optional[str] = None
    game: Optional[str] = None
    scheduled_at: datetime
    duration_minutes: int = DEFAULT_DURATION_MINUTES
    status: SessionStatus = "proposed"
    created_by: str
    auto_confirm_threshold: int = DEFAULT_AUTO_CONFIRM_THRESHOLD
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("duration_minutes", mode="before")
    @classmethod
    def _default_duration(cls, value):
        return DEFAULT_DURATION_MINUTES if value is None else value

    @field_validator("auto_confirm_threshold", mode="before")
    @classmethod
    def _default_threshold(cls, value):
        return DEFAULT_AUTO_CONFIRM_THRESHOLD if value is None else value


class RsvpRecord(BaseModel):
    id: Optional[str] = None
    session_id: str
    user_id: str
    # Kept as plain text: unknown values are dropped by count_responses, not here
    response: str
    responded_at: Optional[datetime] = None


class CheckinRecord(BaseModel):
    id: Optional[str] = None
    session_id: str
    user_id: str
    status: str = "present"
    checked_at: Optional[datetime] = None


class RsvpCounts(BaseModel):
    present: int = 0
    absent: int = 0
    maybe: int = 0

    @property
    def total(self) -> int:
        return self.present + self.absent + self.maybe


class SessionView(SessionRecord):
    rsvps: List[RsvpRecord] = []
    checkins: List[CheckinRecord] = []
    my_rsvp: Optional[RsvpResponse] = None
    rsvp_counts: RsvpCounts = Field(default_factory=RsvpCounts)
    attendance_rate: int = 0
