"""RSS and Atom feeds parsing.

``Feed`` and ``Entry`` abstract the differences between RSS items and Atom
entries so the synchronization code handles a single representation.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional
from urllib.parse import urljoin

import feedparser
from bs4 import BeautifulSoup

from .url import sanitize

logger = logging.getLogger(__name__)

FEED_CONTENT_TYPES = {
    "application/atom+xml",
    "application/rss+xml",
    "application/rdf+xml",
    "application/x-rss+xml",
    "application/xml",
    "text/rss+xml",
    "text/xml",
}

FEED_LINK_TYPES = {
    "application/atom+xml",
    "application/rss+xml",
    "application/rdf+xml",
    "application/x-rss+xml",
}


class FeedParseError(Exception):
    """Raised when a document can't be parsed as a RSS or Atom feed."""


def is_feed_content_type(content_type: Optional[str]) -> bool:
    if not content_type:
        return False
    mime_type = content_type.split(";")[0].strip().lower()
    return mime_type in FEED_CONTENT_TYPES


def is_html_content_type(content_type: Optional[str]) -> bool:
    if not content_type:
        return False
    mime_type = content_type.split(";")[0].strip().lower()
    return "html" in mime_type


def _to_datetime(struct_time) -> Optional[datetime]:
    if not struct_time:
        return None
    try:
        return datetime(*struct_time[:6])
    except (TypeError, ValueError):
        return None


@dataclass
class Entry:
    """A generic object to abstract Atom entries and RSS items."""
    id: str = ""
    title: str = ""
    link: str = ""
    published_at: Optional[datetime] = None

    @classmethod
    def from_feedparser(cls, entry, base_url: str = "") -> "Entry":
        published = entry.get("published_parsed") or entry.get("updated_parsed")
        link = (entry.get("link", "") or "").strip()
        return cls(
            id=entry.get("id", "") or "",
            title=(entry.get("title", "") or "").strip(),
            link=urljoin(base_url, link) if link and base_url else link,
            published_at=_to_datetime(published),
        )


@dataclass
class Feed:
    type: str = ""
    title: str = ""
    description: str = ""
    link: str = ""
    entries: List[Entry] = field(default_factory=list)

    @classmethod
    def from_text(cls, text: str, base_url: str = "") -> "Feed":
        """Parse a RSS or Atom document.

        Relative links of the document are resolved against ``base_url``,
        usually the URL of the feed.

        Raises:
            FeedParseError: if the text is neither RSS nor Atom
        """
        if not text or not text.strip():
            raise FeedParseError("Can’t parse an empty string as a feed")

        # The text is already decoded: tell feedparser so it doesn't trust
        # the encoding declared by the XML prolog.
        response_headers = {"content-type": "application/xml; charset=utf-8"}
        if base_url:
            response_headers["content-location"] = base_url
        parsed = feedparser.parse(text.encode("utf-8"), response_headers=response_headers)

        version = parsed.get("version") or ""
        if version.startswith("rss"):
            feed_type = "rss"
        elif version.startswith("atom"):
            feed_type = "atom"
        else:
            error = parsed.get("bozo_exception")
            if error:
                raise FeedParseError(f"Can’t parse the document as a feed: {error}")
            raise FeedParseError("The document is not a RSS or Atom feed")

        if parsed.get("bozo"):
            logger.debug(f"Feed parsed with errors: {parsed.get('bozo_exception')}")

        metadata = parsed.feed
        link = (metadata.get("link", "") or "").strip()
        return cls(
            type=feed_type,
            title=(metadata.get("title", "") or "").strip(),
            description=(metadata.get("subtitle", "") or "").strip(),
            link=urljoin(base_url, link) if link and base_url else link,
            entries=[Entry.from_feedparser(entry, base_url) for entry in parsed.entries],
        )


def discover_feed_urls(html: str, base_url: str) -> List[str]:
    """Return the feeds URLs declared by the <link rel="alternate"> of a HTML page."""
    soup = BeautifulSoup(html, "html.parser")
    urls: List[str] = []
    for node in soup.find_all("link", attrs={"rel": "alternate"}):
        link_type = (node.get("type") or "").split(";")[0].strip().lower()
        href = (node.get("href") or "").strip()
        if link_type not in FEED_LINK_TYPES or not href:
            continue

        url = sanitize(urljoin(base_url, href))
        if url not in urls:
            urls.append(url)
    return urls
