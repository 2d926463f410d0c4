from fastapi import APIRouter, Depends, HTTPException, UploadFile, File, Response
from fastapi.responses import FileResponse, JSONResponse
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from app.database import get_db
from app.models.teacher import Teacher
from app.models.workshop import Workshop, WorkshopTeacher
from app.schemas.teacher import TeacherCreate, TeacherUpdate, TeacherOut
from app.schemas.workshop import TeacherDetailOut, WorkshopOut
from app.utils.assets import AssetStore, get_asset_store, prepare_picture
from app.utils.permissions import Action, require_permission

import logging
logger = logging.getLogger("app.teachers")


router = APIRouter(prefix="/teachers", tags=["Teachers"])


def _get_teacher_or_404(db: Session, teacher_id: int) -> Teacher:
    t = db.query(Teacher).filter(Teacher.id == teacher_id).first()
    if not t:
        raise HTTPException(status_code=404, detail="Teacher not found")
    return t


def _teacher_workshops(db: Session, teacher_id: int) -> list[Workshop]:
    """Workshops whose teacher references contain this teacher id."""
    return (
        db.query(Workshop)
        .join(WorkshopTeacher, WorkshopTeacher.workshop_id == Workshop.id)
        .filter(WorkshopTeacher.teacher_id == teacher_id)
        .distinct()
        .order_by(Workshop.id.asc())
        .all()
    )


def _detail(db: Session, t: Teacher) -> TeacherDetailOut:
    return TeacherDetailOut(
        teacher=TeacherOut.from_model(t),
        workshops=[WorkshopOut.from_model(w) for w in _teacher_workshops(db, t.id)],
    )


def _name_taken(db: Session, full_name: str, exclude_id: int | None = None) -> bool:
    q = db.query(Teacher.id).filter(Teacher.full_name == full_name)
    if exclude_id is not None:
        q = q.filter(Teacher.id != exclude_id)
    return q.first() is not None


@router.post("", response_model=TeacherOut, status_code=201)
def create_teacher(
    body: TeacherCreate,
    admin=Depends(require_permission(Action.ADD_TEACHER)),
    db: Session = Depends(get_db),
):
    if _name_taken(db, body.full_name):
        raise HTTPException(status_code=400, detail="Teacher name already exists")

    t = Teacher(full_name=body.full_name, description=body.description)
    db.add(t)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="Teacher name already exists")

    db.refresh(t)
    logger.info("Admin %s created teacher %s (%s)", admin.username, t.id, t.full_name)
    return TeacherOut.from_model(t)


@router.get("", response_model=list[TeacherDetailOut])
def list_teachers(
    admin=Depends(require_permission(Action.GET_TEACHER)),
    db: Session = Depends(get_db),
):
    teachers = db.query(Teacher).order_by(Teacher.id.asc()).all()
    return [_detail(db, t) for t in teachers]


@router.get("/manage/{teacher_id}", response_model=TeacherDetailOut)
def get_teacher(
    teacher_id: int,
    admin=Depends(require_permission(Action.GET_TEACHER)),
    db: Session = Depends(get_db),
):
    t = _get_teacher_or_404(db, teacher_id)
    return _detail(db, t)


@router.patch("/manage/{teacher_id}", response_model=TeacherOut)
def update_teacher(
    teacher_id: int,
    body: TeacherUpdate,
    admin=Depends(require_permission(Action.EDIT_TEACHER)),
    db: Session = Depends(get_db),
):
    t = _get_teacher_or_404(db, teacher_id)

    data = body.model_dump(exclude_unset=True)
    if "full_name" in data and _name_taken(db, data["full_name"], exclude_id=t.id):
        raise HTTPException(status_code=400, detail="Teacher name already exists")

    # workshop references keep the name they were created with
    for k, v in data.items():
        setattr(t, k, v)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="Teacher name already exists")

    db.refresh(t)
    logger.info("Admin %s updated teacher %s: %s", admin.username, t.id, sorted(data))
    return TeacherOut.from_model(t)


@router.delete("/manage/{teacher_id}", status_code=204)
def delete_teacher(
    teacher_id: int,
    admin=Depends(require_permission(Action.DELETE_TEACHER)),
    db: Session = Depends(get_db),
    store: AssetStore = Depends(get_asset_store),
):
    t = _get_teacher_or_404(db, teacher_id)

    image_key = t.image_key
    db.delete(t)
    db.commit()
    store.delete(image_key)

    logger.info("Admin %s deleted teacher %s", admin.username, teacher_id)
    return Response(status_code=204)


# pictures
@router.get("/pic/{teacher_id}")
def get_teacher_picture(teacher_id: int, store: AssetStore = Depends(get_asset_store)):
    path = store.open_path(store.teacher_key(teacher_id))
    if path is None:
        return JSONResponse(status_code=404, content={"detail": "File Not Found"})
    return FileResponse(path, media_type="image/png")


@router.post("/pic/{teacher_id}", response_model=TeacherOut)
async def upload_teacher_picture(
    teacher_id: int,
    pic: UploadFile = File(...),
    admin=Depends(require_permission(Action.EDIT_TEACHER)),
    db: Session = Depends(get_db),
    store: AssetStore = Depends(get_asset_store),
):
    t = _get_teacher_or_404(db, teacher_id)

    data = await prepare_picture(pic)
    key = store.teacher_key(t.id)
    store.save(key, data)

    t.image_key = key
    db.commit()
    db.refresh(t)
    logger.info("Admin %s uploaded picture for teacher %s", admin.username, t.id)
    return TeacherOut.from_model(t)


@router.delete("/pic/{teacher_id}", response_model=TeacherOut)
def delete_teacher_picture(
    teacher_id: int,
    admin=Depends(require_permission(Action.EDIT_TEACHER)),
    db: Session = Depends(get_db),
    store: AssetStore = Depends(get_asset_store),
):
    t = _get_teacher_or_404(db, teacher_id)
    if not t.image_key:
        raise HTTPException(status_code=404, detail="Picture not found")

    store.delete(t.image_key)
    t.image_key = None
    db.commit()
    db.refresh(t)
    logger.info("Admin %s removed picture of teacher %s", admin.username, t.id)
    return TeacherOut.from_model(t)
