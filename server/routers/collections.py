"""Collections of links, followed collections and discovery."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from config.database import get_db
from server.schemas import CollectionRequest, CollectionUpdateRequest
from server.security import get_current_user, get_optional_user, require_csrf
from services.shared import dao
from services.shared.errors import ValidationError
from services.shared.models import Collection, User

router = APIRouter(tags=["collections"])


def _find_viewable(db: Session, collection_id: str, user: Optional[User]) -> Collection:
    collection = db.get(Collection, collection_id)
    is_owner = collection is not None and user is not None and collection.user_id == user.id
    if not collection or not (is_owner or collection.is_public):
        raise HTTPException(status_code=404, detail="This collection doesn’t exist.")
    return collection


def _find_updatable(db: Session, collection_id: str, user: User) -> Collection:
    collection = db.get(Collection, collection_id)
    if not collection or collection.user_id != user.id or collection.type != "collection":
        raise HTTPException(status_code=404, detail="This collection doesn’t exist.")
    return collection


def _check_topic_ids(db: Session, topic_ids) -> None:
    if not dao.topic_ids_exist(db, topic_ids):
        raise ValidationError({"topic_ids": "One of the associated topic doesn’t exist."})


@router.get("/collections")
def list_collections(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    rows = dao.collections_with_number_links(db, user.id)
    return {"collections": [collection.to_dict(number_links) for collection, number_links in rows]}


@router.post("/collections", status_code=201)
def create_collection(req: CollectionRequest, user: User = Depends(require_csrf),
                      db: Session = Depends(get_db)):
    collection = Collection.init(user.id, req.name, req.description, req.is_public)
    collection.check()
    _check_topic_ids(db, req.topic_ids)
    db.add(collection)
    db.flush()
    dao.set_topics(db, collection.id, req.topic_ids)
    db.commit()
    return {
        "collection": collection.to_dict(number_links=0),
        "topics": [topic.to_dict() for topic in dao.topics_of_collection(db, collection.id)],
    }


@router.get("/collections/followed")
def list_followed(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    rows = dao.followed_with_number_links(db, user.id)
    return {"collections": [collection.to_dict(number_links) for collection, number_links in rows]}


@router.get("/collections/{collection_id}")
def show_collection(collection_id: str, user: Optional[User] = Depends(get_optional_user),
                    db: Session = Depends(get_db)):
    collection = _find_viewable(db, collection_id, user)
    is_owner = user is not None and collection.user_id == user.id
    links = dao.links_of_collection(db, collection.id, visible_only=not is_owner)
    return {
        "collection": collection.to_dict(number_links=len(links)),
        "links": [link.to_dict() for link in links],
        "topics": [topic.to_dict() for topic in dao.topics_of_collection(db, collection.id)],
        "is_owner": is_owner,
        "is_followed": user is not None and dao.is_following(db, user.id, collection.id),
        "number_followers": dao.followers_count(db, collection.id),
    }


@router.patch("/collections/{collection_id}")
def update_collection(collection_id: str, req: CollectionUpdateRequest,
                      user: User = Depends(require_csrf), db: Session = Depends(get_db)):
    collection = _find_updatable(db, collection_id, user)
    if req.topic_ids is not None:
        _check_topic_ids(db, req.topic_ids)
    if req.name is not None:
        collection.name = req.name.strip()
    if req.description is not None:
        collection.description = req.description.strip()
    if req.is_public is not None:
        collection.is_public = req.is_public

    errors = collection.validate()
    if errors:
        db.rollback()
        raise ValidationError(errors)

    if req.topic_ids is not None:
        dao.set_topics(db, collection.id, req.topic_ids)

    db.commit()
    return {
        "collection": collection.to_dict(),
        "topics": [topic.to_dict() for topic in dao.topics_of_collection(db, collection.id)],
    }


@router.delete("/collections/{collection_id}", status_code=204)
def delete_collection(collection_id: str, user: User = Depends(require_csrf),
                      db: Session = Depends(get_db)):
    collection = _find_updatable(db, collection_id, user)
    db.delete(collection)
    db.commit()
    return Response(status_code=204)


@router.post("/collections/{collection_id}/follow")
def follow_collection(collection_id: str, user: User = Depends(require_csrf),
                      db: Session = Depends(get_db)):
    collection = _find_viewable(db, collection_id, user)
    if collection.user_id == user.id:
        raise ValidationError({"collection": "You can’t follow your own collection."})

    dao.follow(db, user.id, collection.id)
    db.commit()
    return {"is_followed": True}


@router.delete("/collections/{collection_id}/follow")
def unfollow_collection(collection_id: str, user: User = Depends(require_csrf),
                        db: Session = Depends(get_db)):
    collection = _find_viewable(db, collection_id, user)
    dao.unfollow(db, user.id, collection.id)
    db.commit()
    return {"is_followed": False}


@router.get("/discovery")
def discovery(user: Optional[User] = Depends(get_optional_user), db: Session = Depends(get_db)):
    rows = dao.list_for_discovering(db, user.id if user else None)
    return {
        "topics": [topic.to_dict() for topic in dao.list_topics(db)],
        "collections": [collection.to_dict(number_links) for collection, number_links in rows],
    }
