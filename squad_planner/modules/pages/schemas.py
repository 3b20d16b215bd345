from pydantic import BaseModel
from typing import List, Optional

from squad_planner.client.hydration import DehydratedQuery
from squad_planner.modules.profiles.schemas import ProfileRecord
from squad_planner.modules.sessions.schemas import SessionView
from squad_planner.modules.squads.schemas import SquadDetail, SquadView


class HomePage(BaseModel):
    squads: List[SquadView] = []
    upcoming_sessions: List[SessionView] = []
    profile: Optional[ProfileRecord] = None
    queries: List[DehydratedQuery] = []


class SquadPage(BaseModel):
    squad: SquadDetail
    sessions: List[SessionView] = []
    queries: List[DehydratedQuery] = []
