"""The news: links picked for the user from the collections they follow."""

import logging
from datetime import timedelta
from typing import List

from sqlalchemy.orm import Session

from services.shared import dao, utils
from services.shared.errors import NotFoundError
from services.shared.models import Link, User

logger = logging.getLogger(__name__)


class NewsPicker:
    """Select recent links from the followed collections and copy them in the news."""

    def __init__(self, max_links: int = 50, since_days: int = 7):
        self.max_links = max_links
        self.since_days = since_days

    def candidates(self, db: Session, user: User) -> List[Link]:
        since = utils.utcnow() - timedelta(days=self.since_days)
        # Over-fetch since links the user already has are dropped below
        links = dao.followed_links_since(db, user.id, since, self.max_links * 4)
        user_urls = dao.list_link_ids_by_urls(db, user.id)

        picked: List[Link] = []
        seen_urls = set()
        for link in links:
            if link.url in user_urls or link.url in seen_urls:
                continue
            seen_urls.add(link.url)
            picked.append(link)
            if len(picked) >= self.max_links:
                break
        return picked

    def pick(self, db: Session, user: User) -> List[Link]:
        """Fill the news of the user and return the links added to it."""
        news = dao.collection_of_type(db, user.id, "news")
        if not news:
            raise NotFoundError("The user has no news collection")

        news_links = []
        for link in self.candidates(db, user):
            news_link = Link.copy(link, user.id)
            news_link.feed_published_at = link.published_at()
            db.add(news_link)
            news_links.append(news_link)
        db.flush()

        dao.attach_links(db, [(link.id, news.id) for link in news_links])
        logger.info(f"{len(news_links)} links picked for the news of user {user.id}")
        return news_links


def _special_collections(db: Session, user: User):
    collections = {
        collection_type: dao.collection_of_type(db, user.id, collection_type)
        for collection_type in ("bookmarks", "news", "read")
    }
    if not all(collections.values()):
        raise NotFoundError("The user misses a special collection")
    return collections


def mark_news_as_read(db: Session, user: User) -> int:
    """Move the links of the news to the read list (out of the bookmarks too)."""
    collections = _special_collections(db, user)
    links = dao.links_of_collection(db, collections["news"].id)
    link_ids = [link.id for link in links]

    dao.attach_links(db, [(link_id, collections["read"].id) for link_id in link_ids])
    dao.detach_links(db, link_ids, [collections["bookmarks"].id, collections["news"].id])
    return len(link_ids)


def read_news_later(db: Session, user: User) -> int:
    """Move the links of the news to the bookmarks."""
    collections = _special_collections(db, user)
    links = dao.links_of_collection(db, collections["news"].id)
    link_ids = [link.id for link in links]

    dao.attach_links(db, [(link_id, collections["bookmarks"].id) for link_id in link_ids])
    dao.detach_links(db, link_ids, [collections["news"].id])
    return len(link_ids)
