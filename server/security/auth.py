"""Authentication and CSRF dependencies of the API."""

import hmac
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from config.database import get_db
from services import users
from services.shared.models import User

SESSION_COOKIE = "flusio_session_token"
CSRF_ERROR = "A security verification failed: you should retry to submit the form."


def session_token(request: Request) -> Optional[str]:
    """Return the session token from the cookie or the Authorization header."""
    token = request.cookies.get(SESSION_COOKIE)
    if token:
        return token

    authorization = request.headers.get("authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None


def get_optional_user(request: Request, db: Session = Depends(get_db)) -> Optional[User]:
    return users.find_user_by_session_token(db, session_token(request))


def get_current_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    if not user:
        raise HTTPException(status_code=401, detail="You must be connected to do this.")
    return user


def require_csrf(
    user: User = Depends(get_current_user),
    x_csrf_token: Optional[str] = Header(default=None),
) -> User:
    """Return the current user if the request carries their CSRF token."""
    # Header values are decoded as latin-1: compare bytes, not str
    if not x_csrf_token or not hmac.compare_digest(
        x_csrf_token.encode("utf-8"), (user.csrf or "").encode("utf-8")
    ):
        raise HTTPException(status_code=400, detail=CSRF_ERROR)
    return user
