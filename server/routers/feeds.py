"""Feeds followed by the users."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from config.database import get_db
from pipelines import url as url_utils
from pipelines.feed_fetcher import FeedFetcher
from server.dependencies import get_feed_fetcher
from server.jobs import job_manager
from server.schemas import FeedRequest
from server.security import require_csrf
from services import users
from services.shared import dao
from services.shared.errors import ValidationError
from services.shared.models import Collection, User

logger = logging.getLogger(__name__)

router = APIRouter(tags=["feeds"])


@router.post("/feeds", status_code=201)
def add_feed(req: FeedRequest, user: User = Depends(require_csrf), db: Session = Depends(get_db),
             fetcher: FeedFetcher = Depends(get_feed_fetcher)):
    """Follow the feed of the given URL, creating and fetching it if needed.

    The URL can be the one of a website declaring its feed.
    """
    url_error = url_utils.validate(req.url)
    if url_error:
        raise ValidationError({"url": url_error})

    url = url_utils.sanitize(req.url)
    collection = dao.find_feed_by_url(db, url)
    if not collection:
        feed_url = fetcher.discover(url) or url
        collection = dao.find_feed_by_url(db, feed_url)

    if not collection:
        support_user = users.support_user(db)
        collection = Collection.init_feed(support_user.id, feed_url)
        collection.check()
        db.add(collection)
        db.flush()
        fetcher.fetch(db, collection)
        logger.info(f"Feed {feed_url} created by user {user.id}")

    dao.follow(db, user.id, collection.id)
    db.commit()
    return {"collection": collection.to_dict(), "is_followed": True}


@router.post("/feeds/{collection_id}/sync", status_code=202)
def sync_feed(collection_id: str, user: User = Depends(require_csrf), db: Session = Depends(get_db)):
    collection = db.get(Collection, collection_id)
    if not collection or collection.type != "feed" or not dao.is_following(db, user.id, collection.id):
        raise HTTPException(status_code=404, detail="This feed doesn’t exist.")

    job_id = job_manager.enqueue("feed_fetch", {"collection_id": collection_id}, queue="fetchers")
    return {"job_id": job_id}
