"""Topics: public collections listed by theme."""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from config.database import get_db
from services.shared import dao, utils
from services.shared.models import Topic

router = APIRouter(tags=["topics"])

COLLECTIONS_PER_PAGE = 30


@router.get("/topics")
def list_topics(db: Session = Depends(get_db)):
    return {"topics": [topic.to_dict() for topic in dao.list_topics(db)]}


@router.get("/topics/{topic_id}")
def show_topic(topic_id: str, page: int = 1, db: Session = Depends(get_db)):
    topic = db.get(Topic, topic_id)
    if not topic:
        raise HTTPException(status_code=404, detail="This topic doesn’t exist.")

    number_collections = dao.count_public_by_topic(db, topic.id)
    pagination = utils.Pagination(number_collections, COLLECTIONS_PER_PAGE, page)
    if pagination.current_page != page:
        return RedirectResponse(f"/topics/{topic.id}?page={pagination.current_page}", status_code=302)

    rows = dao.public_with_number_links_by_topic(
        db, topic.id, pagination.offset, pagination.number_per_page
    )
    return {
        "topic": topic.to_dict(),
        "collections": [collection.to_dict(number_links) for collection, number_links in rows],
        "pagination": pagination.to_dict(),
    }
