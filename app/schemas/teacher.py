import unicodedata
from datetime import datetime
from typing import Optional

from pydantic import ConfigDict, Field, field_validator

from app.models.teacher import Teacher
from app.schemas.common import CamelModel, api_url

ZWNJ = "\u200c"


def _is_name_token(token: str) -> bool:
    if not token[0].isalpha():
        return False
    for ch in token[1:]:
        if ch.isalpha() or ch == ZWNJ or unicodedata.category(ch).startswith("M"):
            continue
        return False
    return True


def validate_full_name(value: str) -> str:
    """
    Every whitespace separated token must be made of letters of some script
    ("Ali Rezaei", "علی رضایی", "अमित शर्मा"). Combining marks and a
    zero-width non-joiner may follow the first letter of a token.
    """
    value = unicodedata.normalize("NFC", value).strip()
    if not value:
        raise ValueError("Full name is required")
    for token in value.split():
        if not _is_name_token(token):
            raise ValueError(f"Invalid name: {token!r}")
    return value


class TeacherCreate(CamelModel):
    full_name: str = Field(..., max_length=100)
    description: Optional[str] = None

    @field_validator("full_name")
    @classmethod
    def _check_full_name(cls, v: str) -> str:
        return validate_full_name(v)


class TeacherUpdate(CamelModel):
    model_config = ConfigDict(extra="forbid")

    full_name: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None

    @field_validator("full_name")
    @classmethod
    def _check_full_name(cls, v: Optional[str]) -> str:
        if v is None:
            raise ValueError("fullName cannot be null")
        return validate_full_name(v)


class TeacherOut(CamelModel):
    id: int
    full_name: str
    description: Optional[str] = None
    pic_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, t: Teacher) -> "TeacherOut":
        return cls(
            id=t.id,
            full_name=t.full_name,
            description=t.description,
            pic_url=api_url(f"/teachers/pic/{t.id}") if t.image_key else None,
            created_at=t.created_at,
            updated_at=t.updated_at,
        )
