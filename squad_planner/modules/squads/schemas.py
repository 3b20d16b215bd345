from pydantic import BaseModel, Field
from typing import Optional, List, Literal
from datetime import datetime

SquadRole = Literal["owner", "member"]


class SquadCreate(BaseModel):
    name: str = Field(min_length=1, max_length=80)
    game: str = Field(min_length=1, max_length=80)
    description: Optional[str] = None


class SquadUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=80)
    game: Optional[str] = Field(None, min_length=1, max_length=80)
    description: Optional[str] = None


class SquadJoin(BaseModel):
    invite_code: str = Field(min_length=1, max_length=32)


class SquadRecord(BaseModel):
    id: str
    name: str
    game: str
    description: Optional[str] = None
    invite_code: str
    owner_id: str
    member_count: Optional[int] = None  # stored counter column, may be absent
    created_at: datetime

    class Config:
        from_attributes = True


class MemberProfile(BaseModel):
    username: Optional[str] = None
    avatar_url: Optional[str] = None
    reliability_score: Optional[float] = None


class SquadMemberRecord(BaseModel):
    id: Optional[str] = None
    squad_id: str
    user_id: str
    role: SquadRole = "member"
    created_at: Optional[datetime] = None
    profiles: Optional[MemberProfile] = None

    class Config:
        from_attributes = True


class SquadView(SquadRecord):
    member_count: int = 0


class SquadDetail(SquadView):
    members: List[SquadMemberRecord] = []


class JoinResult(BaseModel):
    squad_id: str
