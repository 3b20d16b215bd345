from pydantic import BaseModel
from typing import Optional


class Identity(BaseModel):
    id: str
    email: Optional[str] = None
    username: Optional[str] = None

    @property
    def display_name(self) -> str:
        if self.username:
            return self.username
        if self.email:
            return self.email.split("@")[0]
        return "User"
