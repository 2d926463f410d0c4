from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base


class Workshop(Base):
    __tablename__ = "workshops"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)

    capacity = Column(Integer, nullable=False, default=0)
    price = Column(Integer, nullable=False, default=0)
    is_reg_open = Column(Boolean, nullable=False, default=False)

    # asset key of the main picture, resolved through AssetStore
    pic_key = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # relationship
    times = relationship(
        "WorkshopTime",
        back_populates="workshop",
        order_by="WorkshopTime.start_at",
        cascade="all, delete-orphan",
    )
    teachers = relationship(
        "WorkshopTeacher",
        back_populates="workshop",
        order_by="WorkshopTeacher.position",
        cascade="all, delete-orphan",
    )
    album = relationship(
        "AlbumPicture",
        back_populates="workshop",
        order_by="AlbumPicture.position",
        cascade="all, delete-orphan",
    )


class WorkshopTime(Base):
    __tablename__ = "workshop_times"

    id = Column(Integer, primary_key=True)
    workshop_id = Column(Integer, ForeignKey("workshops.id", ondelete="CASCADE"), nullable=False, index=True)

    start_at = Column(DateTime(timezone=True), nullable=False)
    end_at = Column(DateTime(timezone=True), nullable=False)

    workshop = relationship("Workshop", back_populates="times")


class WorkshopTeacher(Base):
    """
    A teacher reference as it was when written.
    `name` is a snapshot of Teacher.full_name and does not follow renames;
    teacher_id carries no FK so the reference outlives the teacher.
    """
    __tablename__ = "workshop_teachers"

    id = Column(Integer, primary_key=True)
    workshop_id = Column(Integer, ForeignKey("workshops.id", ondelete="CASCADE"), nullable=False, index=True)
    teacher_id = Column(Integer, nullable=False, index=True)
    name = Column(String(100), nullable=True)
    position = Column(Integer, nullable=False, default=0)

    workshop = relationship("Workshop", back_populates="teachers")


class AlbumPicture(Base):
    __tablename__ = "album_pictures"

    id = Column(String(32), primary_key=True)
    workshop_id = Column(Integer, ForeignKey("workshops.id", ondelete="CASCADE"), nullable=False, index=True)
    key = Column(String(255), nullable=False)
    # upload order; pictures of one batch share created_at
    position = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    workshop = relationship("Workshop", back_populates="album")
