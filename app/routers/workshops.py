from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy import func
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from app.database import get_db
from app.models.participation import Participation
from app.models.teacher import Teacher
from app.models.user import User
from app.models.workshop import Workshop, WorkshopTeacher, WorkshopTime
from app.schemas.teacher import TeacherOut
from app.schemas.user import UserOut
from app.schemas.workshop import (
    WorkshopCreate, WorkshopUpdate, WorkshopOut,
    WorkshopManageOut, WorkshopManageDetailOut, WorkshopPublicDetailOut,
    EnrollmentOut, TeacherRefIn, TimeRange,
)
from app.utils.assets import AssetStore, get_asset_store
from app.utils.excel_export import rows_to_xlsx_bytes, make_filename
from app.utils.permissions import Action, require_permission

import logging
logger = logging.getLogger("app.workshops")


router = APIRouter(prefix="/workshops", tags=["Workshops"])

PARTICIPANT_COLUMNS = ["id", "fullName", "email", "phoneNumber", "registeredAt"]


def get_workshop_or_404(db: Session, workshop_id: int) -> Workshop:
    w = db.query(Workshop).filter(Workshop.id == workshop_id).first()
    if not w:
        raise HTTPException(status_code=404, detail="Workshop not found")
    return w


def _snapshot_teachers(db: Session, refs: list[TeacherRefIn]) -> list[WorkshopTeacher]:
    """
    Resolve each reference and copy the teacher's current name into it.
    An unknown teacher id rejects the whole request before anything is written.
    """
    out = []
    for position, ref in enumerate(refs):
        teacher = db.query(Teacher).filter(Teacher.id == ref.id).first()
        if not teacher:
            raise HTTPException(status_code=404, detail=f"Teacher {ref.id} not found")
        out.append(WorkshopTeacher(teacher_id=teacher.id, name=teacher.full_name, position=position))
    return out


def _times(ranges: list[TimeRange]) -> list[WorkshopTime]:
    return [WorkshopTime(start_at=r.start, end_at=r.end) for r in ranges]


def _participants(db: Session, workshop_id: int) -> list[User]:
    return (
        db.query(User)
        .join(Participation, Participation.user_id == User.id)
        .filter(Participation.workshop_id == workshop_id)
        .order_by(Participation.id.asc())
        .all()
    )


def _participants_count(db: Session, workshop_id: int) -> int:
    return (
        db.query(func.count(Participation.id))
        .filter(Participation.workshop_id == workshop_id)
        .scalar()
    ) or 0


def _current_teachers(db: Session, w: Workshop) -> list[Teacher]:
    """Live Teacher records behind the references; deleted teachers are skipped."""
    ids = [r.teacher_id for r in w.teachers]
    if not ids:
        return []
    by_id = {t.id: t for t in db.query(Teacher).filter(Teacher.id.in_(ids)).all()}
    return [by_id[i] for i in ids if i in by_id]


@router.post("", response_model=WorkshopOut, status_code=201)
def create_workshop(
    body: WorkshopCreate,
    admin=Depends(require_permission(Action.ADD_WORKSHOP)),
    db: Session = Depends(get_db),
):
    teacher_refs = _snapshot_teachers(db, body.teachers)

    w = Workshop(
        capacity=body.capacity,
        title=body.title,
        price=body.price,
        is_reg_open=body.is_reg_open,
        description=body.description,
    )
    w.times = _times(body.times)
    w.teachers = teacher_refs
    db.add(w)
    db.commit()
    db.refresh(w)

    logger.info("Admin %s created workshop %s (%s)", admin.username, w.id, w.title)
    return WorkshopOut.from_model(w)


@router.get("/manage", response_model=list[WorkshopManageOut])
def admin_list_workshops(
    admin=Depends(require_permission(Action.GET_WORKSHOP)),
    db: Session = Depends(get_db),
):
    workshops = db.query(Workshop).order_by(Workshop.id.asc()).all()
    out = []
    for w in workshops:
        participants = _participants(db, w.id)
        out.append(
            WorkshopManageOut(
                workshop=WorkshopOut.from_model(w),
                participants=[UserOut.from_model(u) for u in participants],
                participants_count=len(participants),
            )
        )
    return out


@router.get("", response_model=list[WorkshopOut])
def list_workshops(db: Session = Depends(get_db)):
    workshops = db.query(Workshop).order_by(Workshop.id.asc()).all()
    return [WorkshopOut.from_model(w) for w in workshops]


@router.get("/manage/{workshop_id}", response_model=WorkshopManageDetailOut)
def admin_get_workshop(
    workshop_id: int,
    admin=Depends(require_permission(Action.GET_WORKSHOP)),
    db: Session = Depends(get_db),
):
    w = get_workshop_or_404(db, workshop_id)
    participants = _participants(db, w.id)
    return WorkshopManageDetailOut(
        workshop=WorkshopOut.from_model(w),
        participants=[UserOut.from_model(u) for u in participants],
        teachers=[TeacherOut.from_model(t) for t in _current_teachers(db, w)],
        participants_count=len(participants),
    )


@router.get("/manage/{workshop_id}/participants/export")
def admin_export_participants(
    workshop_id: int,
    admin=Depends(require_permission(Action.GET_WORKSHOP)),
    db: Session = Depends(get_db),
):
    w = get_workshop_or_404(db, workshop_id)

    rows = (
        db.query(User, Participation.created_at)
        .join(Participation, Participation.user_id == User.id)
        .filter(Participation.workshop_id == w.id)
        .order_by(Participation.id.asc())
        .all()
    )
    data = [
        {
            "id": u.id,
            "fullName": u.full_name,
            "email": u.email,
            "phoneNumber": u.phone_number,
            "registeredAt": registered_at.strftime("%Y-%m-%d %H:%M:%S") if registered_at else None,
        }
        for u, registered_at in rows
    ]

    content = rows_to_xlsx_bytes(data, PARTICIPANT_COLUMNS, sheet_name=f"workshop_{w.id}")
    filename = make_filename(f"workshop_{w.id}_participants")
    logger.info("Admin %s exported %d participants of workshop %s", admin.username, len(data), w.id)
    return Response(
        content=content,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.patch("/manage/{workshop_id}", response_model=WorkshopOut)
def admin_update_workshop(
    workshop_id: int,
    body: WorkshopUpdate,
    admin=Depends(require_permission(Action.EDIT_WORKSHOP)),
    db: Session = Depends(get_db),
):
    w = get_workshop_or_404(db, workshop_id)

    data = body.model_dump(exclude_unset=True)

    # relations are rebuilt, not setattr'd
    data.pop("teachers", None)
    data.pop("times", None)
    if body.teachers is not None:
        w.teachers = _snapshot_teachers(db, body.teachers)
    if body.times is not None:
        w.times = _times(body.times)

    for k, v in data.items():
        setattr(w, k, v)

    db.commit()
    db.refresh(w)
    logger.info("Admin %s updated workshop %s: %s", admin.username, w.id, sorted(body.model_fields_set))
    return WorkshopOut.from_model(w)


@router.delete("/manage/{workshop_id}", status_code=204)
def admin_delete_workshop(
    workshop_id: int,
    admin=Depends(require_permission(Action.DELETE_WORKSHOP)),
    db: Session = Depends(get_db),
    store: AssetStore = Depends(get_asset_store),
):
    w = get_workshop_or_404(db, workshop_id)

    asset_keys = [w.pic_key] + [p.key for p in w.album]

    # enrollments first, so no user is left pointing at a missing workshop
    removed = (
        db.query(Participation)
        .filter(Participation.workshop_id == w.id)
        .delete(synchronize_session=False)
    )
    db.delete(w)
    db.commit()

    for key in asset_keys:
        store.delete(key)

    logger.info("Admin %s deleted workshop %s (%d enrollments removed)", admin.username, workshop_id, removed)
    return Response(status_code=204)


@router.put("/manage/{workshop_id}/user/{user_id}", response_model=EnrollmentOut)
def admin_register_participant(
    workshop_id: int,
    user_id: int,
    admin=Depends(require_permission(Action.EDIT_WORKSHOP)),
    db: Session = Depends(get_db),
):
    w = get_workshop_or_404(db, workshop_id)
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    if not w.is_reg_open:
        raise HTTPException(status_code=400, detail="Registration is closed")

    exists = (
        db.query(Participation.id)
        .filter(Participation.workshop_id == w.id, Participation.user_id == user.id)
        .first()
    )
    if not exists:
        if _participants_count(db, w.id) >= w.capacity:
            raise HTTPException(status_code=409, detail="Workshop is full")

        db.add(Participation(workshop_id=w.id, user_id=user.id))
        try:
            db.commit()
        except IntegrityError:
            # registered by a concurrent request
            db.rollback()
        else:
            logger.info("Admin %s registered user %s in workshop %s", admin.username, user.id, w.id)

    return EnrollmentOut(workshop=WorkshopOut.from_model(w), participants_count=_participants_count(db, w.id))


@router.delete("/manage/{workshop_id}/user/{user_id}", response_model=EnrollmentOut)
def admin_unregister_participant(
    workshop_id: int,
    user_id: int,
    admin=Depends(require_permission(Action.EDIT_WORKSHOP)),
    db: Session = Depends(get_db),
):
    w = get_workshop_or_404(db, workshop_id)
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    p = (
        db.query(Participation)
        .filter(Participation.workshop_id == w.id, Participation.user_id == user.id)
        .first()
    )
    if not p:
        raise HTTPException(status_code=404, detail="User is not registered in this workshop")

    db.delete(p)
    db.commit()
    logger.info("Admin %s unregistered user %s from workshop %s", admin.username, user.id, w.id)
    return EnrollmentOut(workshop=WorkshopOut.from_model(w), participants_count=_participants_count(db, w.id))


@router.get("/{workshop_id}", response_model=WorkshopPublicDetailOut)
def get_workshop(workshop_id: int, db: Session = Depends(get_db)):
    w = get_workshop_or_404(db, workshop_id)
    return WorkshopPublicDetailOut(
        workshop=WorkshopOut.from_model(w),
        teachers=[TeacherOut.from_model(t) for t in _current_teachers(db, w)],
    )
