from datetime import datetime

from pydantic import Field

from schemas.base import CamelModel


class UserCreate(CamelModel):
    username: str = Field(..., min_length=1, max_length=255)


class UserOut(CamelModel):
    id: int
    username: str
    created_at: datetime
