"""Importations from Pocket and OPML files."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from config.database import get_db
from config.settings import settings
from server.dependencies import get_pocket
from server.jobs import job_manager
from server.schemas import OpmlImportRequest, PocketImportRequest
from server.security import get_current_user, require_csrf
from services import importers
from services.pocket import Pocket, PocketError
from services.shared.errors import ValidationError
from services.shared.models import User

logger = logging.getLogger(__name__)

router = APIRouter(tags=["importations"])


def require_pocket():
    if not settings.pocket_enabled:
        raise HTTPException(status_code=404, detail="Pocket is not configured.")


def pocket_redirect_uri() -> str:
    return f"https://{settings.url_host}/pocket/auth"


@router.get("/importations/pocket", dependencies=[Depends(require_pocket)])
def show_pocket_importation(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    importation = importers.ongoing_importation(db, user.id, "pocket")
    return {
        "importation": importation.to_dict() if importation else None,
        "pocket_authorized": bool(user.pocket_access_token),
        "pocket_username": user.pocket_username,
    }


@router.post("/importations/pocket", status_code=202, dependencies=[Depends(require_pocket)])
def import_pocket(req: PocketImportRequest, user: User = Depends(require_csrf),
                  db: Session = Depends(get_db)):
    if not user.pocket_access_token:
        raise ValidationError({"pocket": "You didn’t authorize us to access your Pocket data."})

    importation = importers.create_importation(db, user, "pocket", req.model_dump())
    db.commit()

    job_manager.enqueue("pocket_import", {"importation_id": importation.id}, queue="importators")
    return {"importation": importation.to_dict()}


@router.post("/pocket/request-access", dependencies=[Depends(require_pocket)])
def pocket_request_access(user: User = Depends(require_csrf), db: Session = Depends(get_db),
                          pocket: Pocket = Depends(get_pocket)):
    redirect_uri = pocket_redirect_uri()
    try:
        request_token = pocket.request_token(redirect_uri)
    except PocketError as e:
        raise HTTPException(status_code=502, detail=str(e))

    user.pocket_request_token = request_token
    db.commit()
    return {"authorization_url": Pocket.authorization_url(request_token, redirect_uri)}


@router.post("/pocket/authorize", dependencies=[Depends(require_pocket)])
def pocket_authorize(user: User = Depends(require_csrf), db: Session = Depends(get_db),
                     pocket: Pocket = Depends(get_pocket)):
    if not user.pocket_request_token:
        raise ValidationError({"pocket": "You must request an access to Pocket first."})

    try:
        access = pocket.authorize(user.pocket_request_token)
    except PocketError as e:
        user.pocket_request_token = None
        db.commit()
        raise HTTPException(status_code=400, detail=f"Pocket refused the access: {e}")

    user.pocket_access_token = access["access_token"]
    user.pocket_username = access["username"]
    user.pocket_request_token = None
    db.commit()
    return {"pocket_username": user.pocket_username}


@router.post("/importations/opml", status_code=202)
def import_opml(req: OpmlImportRequest, user: User = Depends(require_csrf),
                db: Session = Depends(get_db)):
    if not req.opml.strip():
        raise ValidationError({"opml": "The file is required."})
    # Fail early: the job would only record the error
    importers.OpmlImporter.feed_urls(req.opml)

    importation = importers.create_importation(db, user, "opml", {"opml": req.opml})
    db.commit()

    job_manager.enqueue("opml_import", {"importation_id": importation.id}, queue="importators")
    return {"importation": importation.to_dict()}
