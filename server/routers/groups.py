"""Groups sorting the collections of a user."""

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from config.database import get_db
from server.schemas import GroupRequest
from server.security import get_current_user, require_csrf
from services.shared import dao
from services.shared.errors import ValidationError
from services.shared.models import Collection, Group, User

router = APIRouter(tags=["groups"])

NAME_TAKEN_ERROR = "You already have a group with this name."


def _find_group(db: Session, group_id: str, user: User) -> Group:
    group = db.get(Group, group_id)
    if not group or group.user_id != user.id:
        raise HTTPException(status_code=404, detail="This group doesn’t exist.")
    return group


@router.get("/groups")
def list_groups(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    groups = []
    for group in dao.groups_of_user(db, user.id):
        owned = dao.collections_with_number_links(db, user.id, group_id=group.id)
        followed = dao.followed_with_number_links(db, user.id, group_id=group.id)
        groups.append({
            "group": group.to_dict(),
            "collections": [collection.to_dict(number_links) for collection, number_links in owned],
            "followed": [collection.to_dict(number_links) for collection, number_links in followed],
        })
    return {"groups": groups}


@router.put("/collections/{collection_id}/group")
def set_collection_group(collection_id: str, req: GroupRequest, user: User = Depends(require_csrf),
                         db: Session = Depends(get_db)):
    """Put an owned or followed collection in the named group, or out of any group if empty."""
    collection = db.get(Collection, collection_id)
    if collection and collection.user_id == user.id and collection.type == "collection":
        target = collection
    else:
        target = dao.followed_collection(db, user.id, collection_id)
    if target is None:
        raise HTTPException(status_code=404, detail="This collection doesn’t exist.")

    name = req.name.strip()
    group = None
    if name:
        group = dao.find_group_by_name(db, user.id, name)
        if group is None:
            group = Group.init(user.id, name)
            errors = group.validate()
            if errors:
                raise ValidationError(errors)
            db.add(group)
            db.flush()

    target.group_id = group.id if group else None
    db.commit()
    return {"group": group.to_dict() if group else None}


@router.patch("/groups/{group_id}")
def rename_group(group_id: str, req: GroupRequest, user: User = Depends(require_csrf),
                 db: Session = Depends(get_db)):
    group = _find_group(db, group_id, user)
    name = req.name.strip()
    existing = dao.find_group_by_name(db, user.id, name)
    if existing is not None and existing.id != group.id:
        raise ValidationError({"name": NAME_TAKEN_ERROR})

    group.name = name
    errors = group.validate()
    if errors:
        db.rollback()
        raise ValidationError(errors)

    db.commit()
    return {"group": group.to_dict()}


@router.delete("/groups/{group_id}", status_code=204)
def delete_group(group_id: str, user: User = Depends(require_csrf), db: Session = Depends(get_db)):
    group = _find_group(db, group_id, user)
    dao.delete_group(db, group)
    db.commit()
    return Response(status_code=204)
