"""Registration, sessions and profile of the current user."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from config.database import get_db
from config.settings import settings
from server.schemas import RegistrationRequest, SessionRequest
from server.security import SESSION_COOKIE, get_current_user, require_csrf, session_token
from services import users
from services.shared.models import User

logger = logging.getLogger(__name__)

router = APIRouter(tags=["accounts"])


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        SESSION_COOKIE,
        token,
        max_age=settings.session_lifetime_days * 24 * 60 * 60,
        httponly=True,
        samesite="lax",
        secure=settings.environment == "production",
    )


@router.post("/registrations", status_code=201)
def register(req: RegistrationRequest, request: Request, response: Response,
             db: Session = Depends(get_db)):
    if not settings.registrations_opened:
        raise HTTPException(status_code=403, detail="Registrations are closed.")

    user = users.create_user(db, req.email, req.username, req.password)
    session = users.create_session(
        db, user,
        name=request.headers.get("user-agent", ""),
        ip=request.client.host if request.client else "",
    )
    db.commit()

    _set_session_cookie(response, session.token)
    return {"user": user.to_dict(with_private=True), "token": session.token}


@router.post("/sessions")
def login(req: SessionRequest, request: Request, response: Response,
          db: Session = Depends(get_db)):
    user = users.authenticate(db, req.email, req.password)
    session = users.create_session(
        db, user,
        name=req.name or request.headers.get("user-agent", ""),
        ip=request.client.host if request.client else "",
    )
    db.commit()

    _set_session_cookie(response, session.token)
    return {"user": user.to_dict(with_private=True), "token": session.token}


@router.delete("/sessions", status_code=204)
def logout(request: Request, user: User = Depends(require_csrf), db: Session = Depends(get_db)):
    users.delete_session(db, session_token(request))
    db.commit()

    response = Response(status_code=204)
    response.delete_cookie(SESSION_COOKIE)
    return response


@router.get("/my/profile")
def profile(user: User = Depends(get_current_user)):
    return {"user": user.to_dict(with_private=True)}
