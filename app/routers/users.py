from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from app.database import get_db
from app.models.participation import Participation
from app.models.user import User
from app.models.workshop import Workshop
from app.schemas.user import UserCreate, UserUpdate, UserOut
from app.schemas.workshop import UserMeOut, WorkshopOut
from app.utils.auth import get_current_user
from app.utils.permissions import Action, require_permission

import logging
logger = logging.getLogger("app.users")


router = APIRouter(prefix="/users", tags=["Users"])


def _get_user_or_404(db: Session, user_id: int) -> User:
    u = db.query(User).filter(User.id == user_id).first()
    if not u:
        raise HTTPException(status_code=404, detail="User not found")
    return u


def _email_taken(db: Session, email: str, exclude_id: int | None = None) -> bool:
    q = db.query(User.id).filter(User.email == email)
    if exclude_id is not None:
        q = q.filter(User.id != exclude_id)
    return q.first() is not None


@router.get("/me", response_model=UserMeOut)
def get_me(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    workshops = (
        db.query(Workshop)
        .join(Participation, Participation.workshop_id == Workshop.id)
        .filter(Participation.user_id == user.id)
        .order_by(Participation.id.asc())
        .all()
    )
    return UserMeOut(
        user=UserOut.from_model(user),
        workshops=[WorkshopOut.from_model(w) for w in workshops],
    )


@router.post("", response_model=UserOut, status_code=201)
def create_user(
    body: UserCreate,
    admin=Depends(require_permission(Action.ADD_USER)),
    db: Session = Depends(get_db),
):
    if _email_taken(db, body.email):
        raise HTTPException(status_code=400, detail="Email already registered")

    u = User(full_name=body.full_name, email=body.email, phone_number=body.phone_number)
    db.add(u)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="Email already registered")

    db.refresh(u)
    logger.info("Admin %s created user %s", admin.username, u.id)
    return UserOut.from_model(u)


@router.get("", response_model=list[UserOut])
def list_users(
    admin=Depends(require_permission(Action.GET_USER)),
    db: Session = Depends(get_db),
):
    users = db.query(User).order_by(User.id.asc()).all()
    return [UserOut.from_model(u) for u in users]


@router.get("/manage/{user_id}", response_model=UserOut)
def get_user(
    user_id: int,
    admin=Depends(require_permission(Action.GET_USER)),
    db: Session = Depends(get_db),
):
    return UserOut.from_model(_get_user_or_404(db, user_id))


@router.patch("/manage/{user_id}", response_model=UserOut)
def update_user(
    user_id: int,
    body: UserUpdate,
    admin=Depends(require_permission(Action.EDIT_USER)),
    db: Session = Depends(get_db),
):
    u = _get_user_or_404(db, user_id)

    data = body.model_dump(exclude_unset=True)
    if "email" in data and _email_taken(db, data["email"], exclude_id=u.id):
        raise HTTPException(status_code=400, detail="Email already registered")

    for k, v in data.items():
        setattr(u, k, v)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="Email already registered")

    db.refresh(u)
    logger.info("Admin %s updated user %s: %s", admin.username, u.id, sorted(data))
    return UserOut.from_model(u)


@router.delete("/manage/{user_id}", status_code=204)
def delete_user(
    user_id: int,
    admin=Depends(require_permission(Action.DELETE_USER)),
    db: Session = Depends(get_db),
):
    u = _get_user_or_404(db, user_id)

    # enrollments and tokens go with the user
    db.delete(u)
    db.commit()
    logger.info("Admin %s deleted user %s", admin.username, user_id)
    return Response(status_code=204)
