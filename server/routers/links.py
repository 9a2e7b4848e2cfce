"""Links, their collections and their messages."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from config.database import get_db
from pipelines import url as url_utils
from pipelines.link_fetcher import LinkFetcher
from server.dependencies import get_link_fetcher
from server.jobs import job_manager
from server.schemas import (LinkCollectionsRequest, LinkRequest, LinkUpdateRequest,
                            MessageRequest)
from server.security import get_current_user, get_optional_user, require_csrf
from services.shared import dao
from services.shared.errors import ValidationError
from services.shared.models import Link, Message, User

logger = logging.getLogger(__name__)

router = APIRouter(tags=["links"])


def _find_viewable(db: Session, link_id: str, user: Optional[User]) -> Link:
    link = db.get(Link, link_id)
    is_owner = link is not None and user is not None and link.user_id == user.id
    if not link or not (is_owner or not link.is_hidden):
        raise HTTPException(status_code=404, detail="This link doesn’t exist.")
    return link


def _find_owned(db: Session, link_id: str, user: User) -> Link:
    link = db.get(Link, link_id)
    if not link or link.user_id != user.id:
        raise HTTPException(status_code=404, detail="This link doesn’t exist.")
    return link


def _check_collection_ids(db: Session, user: User, collection_ids) -> None:
    if not collection_ids:
        raise ValidationError({"collection_ids": "The link must be associated to a collection."})
    if not dao.exist_for_user(db, user.id, collection_ids):
        raise ValidationError({"collection_ids": "One of the associated collection doesn’t exist."})


@router.get("/bookmarks")
def bookmarks(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    collection = dao.collection_of_type(db, user.id, "bookmarks")
    links = dao.links_of_collection(db, collection.id)
    return {"collection": collection.to_dict(len(links)), "links": [link.to_dict() for link in links]}


@router.post("/links", status_code=201)
def create_link(req: LinkRequest, user: User = Depends(require_csrf), db: Session = Depends(get_db)):
    """Save a link in the given collections; an existing link with the same URL is reused."""
    url_error = url_utils.validate(req.url)
    if url_error:
        raise ValidationError({"url": url_error})
    _check_collection_ids(db, user, req.collection_ids)

    url = url_utils.sanitize(req.url)
    link = dao.find_link_by_url(db, user.id, url)
    is_new = link is None
    if is_new:
        link = Link.init(url, user.id, req.is_hidden)
        link.check()
        db.add(link)
    else:
        link.is_hidden = req.is_hidden
    db.flush()

    dao.attach_links(db, [(link.id, collection_id) for collection_id in req.collection_ids])

    if req.comment.strip():
        db.add(Message.init(user.id, link.id, req.comment))

    db.commit()

    if is_new:
        job_manager.enqueue("link_fetch", {"link_id": link.id}, queue="fetchers")

    return {
        "link": link.to_dict(),
        "collection_ids": dao.collection_ids_of_link(db, link.id),
    }


@router.get("/links/{link_id}")
def show_link(link_id: str, user: Optional[User] = Depends(get_optional_user),
              db: Session = Depends(get_db)):
    link = _find_viewable(db, link_id, user)
    data = {
        "link": link.to_dict(),
        "messages": [message.to_dict() for message in link.messages],
    }
    if user and link.user_id == user.id:
        data["collection_ids"] = dao.collection_ids_of_link(db, link.id)
    return data


@router.patch("/links/{link_id}")
def update_link(link_id: str, req: LinkUpdateRequest, user: User = Depends(require_csrf),
                db: Session = Depends(get_db)):
    link = _find_owned(db, link_id, user)
    if req.title is not None:
        link.title = req.title.strip()
    if req.is_hidden is not None:
        link.is_hidden = req.is_hidden

    errors = link.validate()
    if errors:
        db.rollback()
        raise ValidationError(errors)

    db.commit()
    return {"link": link.to_dict()}


@router.delete("/links/{link_id}", status_code=204)
def delete_link(link_id: str, user: User = Depends(require_csrf), db: Session = Depends(get_db)):
    link = _find_owned(db, link_id, user)
    db.delete(link)
    db.commit()
    return Response(status_code=204)


@router.put("/links/{link_id}/collections")
def set_link_collections(link_id: str, req: LinkCollectionsRequest,
                         user: User = Depends(require_csrf), db: Session = Depends(get_db)):
    link = _find_owned(db, link_id, user)
    if not dao.exist_for_user(db, user.id, req.collection_ids):
        raise ValidationError({"collection_ids": "One of the associated collection doesn’t exist."})

    dao.set_collections(db, link.id, req.collection_ids)
    db.commit()
    return {"collection_ids": dao.collection_ids_of_link(db, link.id)}


@router.post("/links/{link_id}/fetch")
def fetch_link(link_id: str, user: User = Depends(require_csrf), db: Session = Depends(get_db),
               fetcher: LinkFetcher = Depends(get_link_fetcher)):
    link = _find_owned(db, link_id, user)
    fetcher.fetch(link)
    db.commit()
    return {"link": link.to_dict()}


@router.get("/links/{link_id}/messages")
def list_messages(link_id: str, user: Optional[User] = Depends(get_optional_user),
                  db: Session = Depends(get_db)):
    link = _find_viewable(db, link_id, user)
    return {"messages": [message.to_dict() for message in link.messages]}


@router.post("/links/{link_id}/messages", status_code=201)
def create_message(link_id: str, req: MessageRequest, user: User = Depends(require_csrf),
                   db: Session = Depends(get_db)):
    link = _find_owned(db, link_id, user)
    message = Message.init(user.id, link.id, req.content)
    db.add(message)
    db.commit()
    return {"message": message.to_dict()}


@router.delete("/messages/{message_id}", status_code=204)
def delete_message(message_id: str, user: User = Depends(require_csrf),
                   db: Session = Depends(get_db)):
    message = db.get(Message, message_id)
    if not message or message.user_id != user.id:
        raise HTTPException(status_code=404, detail="This message doesn’t exist.")
    db.delete(message)
    db.commit()
    return Response(status_code=204)
