from datetime import datetime
from typing import List, Optional

from pydantic import ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from app.models.workshop import Workshop
from app.schemas.common import CamelModel, api_url
from app.schemas.teacher import TeacherOut
from app.schemas.user import UserOut


class TimeRange(CamelModel):
    start: datetime
    end: datetime

    @model_validator(mode="after")
    def _validate_range(self):
        try:
            ordered = self.end > self.start
        except TypeError:
            raise ValueError("start and end must both carry a timezone or both omit it")
        if not ordered:
            raise ValueError("end must be after start")
        return self


class TeacherRefIn(CamelModel):
    # the name is always snapshotted from the Teacher record
    id: int


class TeacherRefOut(CamelModel):
    id: int
    name: Optional[str] = None


class AlbumPictureOut(CamelModel):
    id: str
    url: str


class WorkshopCreate(CamelModel):
    capacity: int = Field(..., ge=0)
    title: str = Field(..., min_length=1, max_length=200)
    price: int = Field(0, ge=0)
    is_reg_open: bool = False
    description: Optional[str] = None
    times: List[TimeRange] = Field(default_factory=list)
    teachers: List[TeacherRefIn] = Field(default_factory=list)


class WorkshopUpdate(CamelModel):
    model_config = ConfigDict(extra="forbid")

    capacity: Optional[int] = Field(None, ge=0)
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    is_reg_open: Optional[bool] = None
    description: Optional[str] = None
    teachers: Optional[List[TeacherRefIn]] = None
    price: Optional[int] = Field(None, ge=0)
    times: Optional[List[TimeRange]] = None

    @model_validator(mode="after")
    def _reject_nulls(self):
        for name in ("capacity", "title", "is_reg_open", "teachers", "price", "times"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{to_camel(name)} cannot be null")
        return self


class WorkshopOut(CamelModel):
    id: int
    capacity: int
    title: str
    price: int
    is_reg_open: bool
    description: Optional[str] = None
    times: List[TimeRange]
    teachers: List[TeacherRefOut]
    pic_url: Optional[str] = None
    album: List[AlbumPictureOut]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, w: Workshop) -> "WorkshopOut":
        return cls(
            id=w.id,
            capacity=w.capacity,
            title=w.title,
            price=w.price,
            is_reg_open=w.is_reg_open,
            description=w.description,
            times=[TimeRange(start=t.start_at, end=t.end_at) for t in w.times],
            teachers=[TeacherRefOut(id=r.teacher_id, name=r.name) for r in w.teachers],
            pic_url=api_url(f"/workshops/pic/{w.id}") if w.pic_key else None,
            album=[
                AlbumPictureOut(id=p.id, url=api_url(f"/workshops/pic/{w.id}/{p.id}"))
                for p in w.album
            ],
            created_at=w.created_at,
            updated_at=w.updated_at,
        )


class WorkshopManageOut(CamelModel):
    workshop: WorkshopOut
    participants: List[UserOut]
    participants_count: int


class WorkshopManageDetailOut(WorkshopManageOut):
    teachers: List[TeacherOut]


class WorkshopPublicDetailOut(CamelModel):
    workshop: WorkshopOut
    teachers: List[TeacherOut]


class EnrollmentOut(CamelModel):
    workshop: WorkshopOut
    participants_count: int


class TeacherDetailOut(CamelModel):
    teacher: TeacherOut
    workshops: List[WorkshopOut]


class UserMeOut(CamelModel):
    user: UserOut
    workshops: List[WorkshopOut]
