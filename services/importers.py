"""Import links and feeds from external services."""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import listparser
from sqlalchemy.orm import Session

from pipelines import url as url_utils
from services import users
from services.shared import dao, utils
from services.shared.errors import NotFoundError, ValidationError
from services.shared.models import Collection, Importation, Link, User

logger = logging.getLogger(__name__)

DEFAULT_POCKET_OPTIONS = {
    "ignore_tags": True,
    "import_bookmarks": True,
    "import_favorites": True,
}


def ongoing_importation(db: Session, user_id: str, importation_type: str) -> Optional[Importation]:
    return (
        db.query(Importation)
        .filter(Importation.user_id == user_id, Importation.type == importation_type)
        .order_by(Importation.created_at.desc())
        .first()
    )


def create_importation(db: Session, user: User, importation_type: str,
                       options: Optional[Dict[str, Any]] = None) -> Importation:
    """Register an importation; only one importation per type can exist at a time."""
    existing = ongoing_importation(db, user.id, importation_type)
    if existing and existing.status == "ongoing":
        raise ValidationError({
            "importation": f"You already have an ongoing {importation_type} importation."
        })
    if existing:
        db.delete(existing)

    importation = Importation(
        created_at=utils.utcnow(),
        type=importation_type,
        status="ongoing",
        options=json.dumps(options or {}),
        user_id=user.id,
    )
    db.add(importation)
    db.flush()
    return importation


class PocketImporter:
    """Create links and collections from Pocket items."""

    def __init__(self, db: Session, user: User):
        self.db = db
        self.user = user

    def _collection_by_name(self, name: str, cache: Dict[str, Collection]) -> Collection:
        key = name.casefold()
        if key not in cache:
            collection = Collection.init(self.user.id, name[:Collection.NAME_MAX_LENGTH])
            self.db.add(collection)
            self.db.flush()
            cache[key] = collection
        return cache[key]

    def import_items(self, items: List[Dict[str, Any]],
                     options: Optional[Dict[str, Any]] = None) -> Dict[str, int]:
        """Import Pocket items.

        Unread items go to the bookmarks, favorite items to a "Pocket
        favorite" collection and, unless ``ignore_tags``, tags become
        collections of the same name.
        """
        options = {**DEFAULT_POCKET_OPTIONS, **(options or {})}

        bookmarks = dao.collection_of_type(self.db, self.user.id, "bookmarks")
        if not bookmarks:
            raise NotFoundError("The user has no bookmarks collection")

        collections_by_name = {
            collection.name.casefold(): collection
            for collection in self.db.query(Collection)
            .filter(Collection.user_id == self.user.id, Collection.type == "collection")
        }
        link_ids_by_urls = dao.list_link_ids_by_urls(self.db, self.user.id)

        pairs = []
        links_created = 0
        for item in items:
            # status 2 means the item was deleted in Pocket
            if str(item.get("status", "0")) == "2":
                continue

            given_url = (item.get("resolved_url") or item.get("given_url") or "").strip()
            if url_utils.validate(given_url):
                continue
            link_url = url_utils.sanitize(given_url)

            link_id = link_ids_by_urls.get(link_url)
            if link_id is None:
                link = Link.init(link_url, self.user.id)
                title = (item.get("resolved_title") or item.get("given_title") or "").strip()
                if title:
                    link.title = title
                time_added = item.get("time_added")
                if time_added and str(time_added).isdigit() and int(time_added) > 0:
                    link.created_at = datetime.fromtimestamp(int(time_added), tz=timezone.utc).replace(tzinfo=None)
                self.db.add(link)
                link_ids_by_urls[link.url] = link.id
                link_id = link.id
                links_created += 1

            collection_ids = []
            if options["import_bookmarks"] and str(item.get("status", "0")) == "0":
                collection_ids.append(bookmarks.id)
            if options["import_favorites"] and str(item.get("favorite", "0")) == "1":
                collection_ids.append(self._collection_by_name("Pocket favorite", collections_by_name).id)
            if not options["ignore_tags"]:
                for tag in (item.get("tags") or {}):
                    collection_ids.append(self._collection_by_name(tag, collections_by_name).id)

            pairs.extend((link_id, collection_id) for collection_id in collection_ids)

        self.db.flush()
        links_attached = dao.attach_links(self.db, pairs)
        logger.info(f"Pocket importation of user {self.user.id}: {links_created} links created")
        return {"links_created": links_created, "links_attached": links_attached}


class OpmlImporter:
    """Follow the feeds listed in an OPML document."""

    def __init__(self, db: Session, user: User):
        self.db = db
        self.user = user

    @staticmethod
    def feed_urls(text: str) -> List[str]:
        parsed = listparser.parse(text)
        if not parsed.get("version"):
            error = parsed.get("bozo_exception") or "it is not an OPML document"
            raise ValidationError({"opml": f"The file can’t be parsed: {error}"})

        urls: List[str] = []
        for feed in parsed.feeds:
            feed_url = (feed.get("url") or "").strip()
            if not feed_url or url_utils.validate(feed_url):
                continue
            feed_url = url_utils.sanitize(feed_url)
            if feed_url not in urls:
                urls.append(feed_url)
        return urls

    def import_opml(self, text: str) -> List[Collection]:
        """Follow every feed of the document; return the collections which were created."""
        support_user = users.support_user(self.db)
        created = []
        for feed_url in self.feed_urls(text):
            collection = dao.find_feed_by_url(self.db, feed_url)
            if not collection:
                collection = Collection.init_feed(support_user.id, feed_url)
                self.db.add(collection)
                self.db.flush()
                created.append(collection)
            dao.follow(self.db, self.user.id, collection.id)

        logger.info(f"OPML importation of user {self.user.id}: {len(created)} feeds created")
        return created
