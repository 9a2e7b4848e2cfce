"""Synchronization of feed collections.

A feed collection is fetched through the response cache, parsed, then its
entries are reconciled with the links of the collection owner: links are
deduplicated by their sanitized URL and each link is attached only once to
the collection.
"""

import hashlib
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from config.settings import settings
from observability.prometheus_metrics import record_feed_fetch
from services.shared import dao, utils
from services.shared.models import Collection, Link

from . import url as url_utils
from .cache import Cache
from .feeds import (Feed, FeedParseError, discover_feed_urls, is_feed_content_type,
                    is_html_content_type)
from .http import Http, Response

logger = logging.getLogger(__name__)


@dataclass
class FetchInfo:
    """Result of fetching a feed URL."""
    status: int
    error: Optional[str] = None
    feed: Optional[Feed] = None
    content_hash: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None and self.feed is not None


class FeedFetcher:
    """Fetch feed collections and create the links of their entries."""

    def __init__(self, no_cache: bool = False, http: Optional[Http] = None,
                 cache: Optional[Cache] = None):
        self.no_cache = no_cache
        self.http = http or Http(user_agent=settings.user_agent, timeout=settings.feeds_timeout)
        self.cache = cache or Cache(settings.cache_path)

    def get(self, url: str) -> Response:
        """GET the URL, from the cache if a fresh response is stored."""
        url_hash = Cache.hash(url)
        if not self.no_cache:
            cached_response = self.cache.get(url_hash, settings.cache_validity)
            if cached_response:
                logger.debug(f"Cache hit for {url}")
                return Response.from_text(cached_response)

        response = self.http.get(url)
        self.cache.save(url_hash, response.to_text())
        return response

    def fetch_url(self, url: str) -> FetchInfo:
        response = self.get(url)
        info = FetchInfo(status=response.status)

        if not response.success:
            info.error = response.data
            return info

        content_type = response.header("content-type")
        if not is_feed_content_type(content_type):
            info.error = f"Invalid content type: {content_type}"
            return info

        info.content_hash = hashlib.sha256(response.data.encode("utf-8")).hexdigest()
        try:
            info.feed = Feed.from_text(response.data, url)
        except FeedParseError as e:
            info.error = str(e)

        return info

    def fetch(self, db: Session, collection: Collection) -> Dict[str, Any]:
        """Synchronize a feed collection.

        Returns counters describing the synchronization: ``status`` (one of
        success, error or unchanged), ``links_created`` and ``links_attached``.
        """
        start_time = time.time()
        info = self.fetch_url(collection.feed_url)

        collection.feed_fetched_at = utils.utcnow()
        collection.feed_fetched_code = info.status

        if info.error is not None:
            logger.info(f"Feed {collection.feed_url} failed ({info.status}): {info.error[:200]}")
            collection.feed_fetched_error = info.error
            db.flush()
            record_feed_fetch("error", time.time() - start_time)
            return {"status": "error", "error": info.error, "links_created": 0, "links_attached": 0}

        collection.feed_fetched_error = None

        if info.content_hash and info.content_hash == collection.feed_last_hash:
            logger.debug(f"Feed {collection.feed_url} didn't change")
            db.flush()
            record_feed_fetch("unchanged", time.time() - start_time)
            return {"status": "unchanged", "links_created": 0, "links_attached": 0}

        feed = info.feed
        self._update_collection(collection, feed)
        collection.feed_last_hash = info.content_hash

        links_created, links_attached = self._sync_entries(db, collection, feed)
        db.flush()

        record_feed_fetch("success", time.time() - start_time, links_created)
        logger.info(
            f"Feed {collection.feed_url} synchronized: "
            f"{links_created} links created, {links_attached} attached"
        )
        return {
            "status": "success",
            "links_created": links_created,
            "links_attached": links_attached,
        }

    @staticmethod
    def _update_collection(collection: Collection, feed: Feed) -> None:
        title = feed.title.strip()[:Collection.NAME_MAX_LENGTH]
        if title:
            collection.name = title

        description = feed.description.strip()
        if description:
            collection.description = description

        if feed.link.strip():
            collection.feed_site_url = url_utils.sanitize(feed.link)

    def _sync_entries(self, db: Session, collection: Collection, feed: Feed):
        user_id = collection.user_id
        link_ids_by_urls = dao.list_link_ids_by_urls(db, user_id)

        new_links: List[Link] = []
        link_ids: List[str] = []
        for entry in feed.entries:
            if not entry.link:
                continue

            link_url = url_utils.sanitize(entry.link)
            link_id = link_ids_by_urls.get(link_url)
            if link_id is None:
                link = Link.init(link_url, user_id, is_hidden=False)
                now = utils.utcnow()
                link.title = entry.title or link.url
                link.created_at = now
                link.feed_entry_id = entry.id or None
                link.feed_published_at = entry.published_at or now
                new_links.append(link)

                link_ids_by_urls[link.url] = link.id
                link_id = link.id

            link_ids.append(link_id)

        if new_links:
            db.add_all(new_links)
            db.flush()

        links_attached = dao.attach_links(db, [(link_id, collection.id) for link_id in link_ids])
        return len(new_links), links_attached

    def discover(self, url: str) -> Optional[str]:
        """Return the URL of the feed for the given URL.

        The URL is returned as is if it serves a feed. If it serves a HTML
        page, the first feed declared by the page is returned.
        """
        url = url_utils.sanitize(url)
        response = self.get(url)
        if not response.success:
            return None

        content_type = response.header("content-type")
        if is_feed_content_type(content_type):
            return url

        if is_html_content_type(content_type):
            feed_urls = discover_feed_urls(response.data, url)
            if feed_urls:
                return feed_urls[0]

        return None
