from datetime import datetime
from typing import Optional

from pydantic import ConfigDict, Field, field_validator

from app.models.user import User
from app.schemas.common import CamelModel


class WorkshopRef(CamelModel):
    workshop: int


class UserCreate(CamelModel):
    full_name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$", max_length=255)
    phone_number: Optional[str] = Field(None, max_length=30)


class UserUpdate(CamelModel):
    model_config = ConfigDict(extra="forbid")

    full_name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[str] = Field(None, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$", max_length=255)
    phone_number: Optional[str] = Field(None, max_length=30)

    @field_validator("full_name", "email")
    @classmethod
    def _not_null(cls, v):
        if v is None:
            raise ValueError("field cannot be null")
        return v


class UserOut(CamelModel):
    id: int
    full_name: str
    email: str
    phone_number: Optional[str] = None
    created_at: datetime
    workshops: list[WorkshopRef] = []

    @classmethod
    def from_model(cls, u: User) -> "UserOut":
        return cls(
            id=u.id,
            full_name=u.full_name,
            email=u.email,
            phone_number=u.phone_number,
            created_at=u.created_at,
            workshops=[WorkshopRef(workshop=p.workshop_id) for p in u.participations],
        )
