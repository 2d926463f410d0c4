from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple
from uuid import uuid4

from jose import jwt, JWTError
from fastapi import HTTPException, Depends, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.models.admin import Admin, AdminToken
from app.models.user import User, UserToken

import logging
logger = logging.getLogger("app.auth")

# Missing headers are reported as 401 by us, not as FastAPI's default 403
bearer_scheme = HTTPBearer(auto_error=False)

ADMIN_KIND = "admin"
USER_KIND = "user"


def create_access_token(data: dict, expires_minutes: Optional[int] = None) -> str:
    to_encode = data.copy()
    minutes = expires_minutes if expires_minutes is not None else settings.ACCESS_TOKEN_EXPIRE_MINUTES
    expire = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    to_encode.update({"exp": expire, "jti": uuid4().hex})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def issue_token(db: Session, owner) -> str:
    """
    Mint a token for an Admin or a User and add it to the owner's
    active-token list. A token only authenticates while it is listed there.
    """
    if isinstance(owner, Admin):
        token = create_access_token({"sub": str(owner.id), "kind": ADMIN_KIND})
        db.add(AdminToken(admin_id=owner.id, token=token))
    elif isinstance(owner, User):
        token = create_access_token({"sub": str(owner.id), "kind": USER_KIND})
        db.add(UserToken(user_id=owner.id, token=token))
    else:
        raise TypeError(f"Cannot issue a token for {type(owner).__name__}")
    db.commit()
    return token


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Please authenticate",
        headers={"WWW-Authenticate": "Bearer"},
    )


def _decode(credentials: Optional[HTTPAuthorizationCredentials], kind: str) -> Tuple[int, str]:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise _unauthorized()

    token = credentials.credentials
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise _unauthorized()

    if payload.get("kind") != kind:
        raise _unauthorized()
    try:
        owner_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise _unauthorized()
    return owner_id, token


def get_current_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> Admin:
    admin_id, token = _decode(credentials, ADMIN_KIND)
    admin = (
        db.query(Admin)
        .join(AdminToken, AdminToken.admin_id == Admin.id)
        .filter(Admin.id == admin_id, AdminToken.token == token)
        .first()
    )
    if not admin:
        logger.info("Rejected admin token for id=%s", admin_id)
        raise _unauthorized()
    return admin


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    user_id, token = _decode(credentials, USER_KIND)
    user = (
        db.query(User)
        .join(UserToken, UserToken.user_id == User.id)
        .filter(User.id == user_id, UserToken.token == token)
        .first()
    )
    if not user:
        logger.info("Rejected user token for id=%s", user_id)
        raise _unauthorized()
    return user
