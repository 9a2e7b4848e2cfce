"""Fetch the pages of the links to complete their metadata."""

import logging
from typing import Any, Dict, Optional

from bs4 import BeautifulSoup
from trafilatura import extract

from config.settings import settings
from observability.prometheus_metrics import record_link_fetch
from services.shared import utils
from services.shared.models import Link

from .cache import Cache
from .feeds import discover_feed_urls, is_feed_content_type, is_html_content_type
from .http import Http, Response

logger = logging.getLogger(__name__)


def extract_title(soup: BeautifulSoup) -> str:
    og_title = soup.find("meta", attrs={"property": "og:title"})
    if og_title and og_title.get("content", "").strip():
        return og_title["content"].strip()

    if soup.title and soup.title.string:
        return " ".join(soup.title.string.split())

    return ""


def count_words(html: str, soup: BeautifulSoup) -> int:
    # Prefer the main content of the page: navigation and footers don't count
    text = extract(html, include_comments=False, include_tables=False)
    if not text:
        body = soup.body or soup
        text = body.get_text(" ")
    return len(text.split())


class LinkFetcher:
    """Fetch a link URL and update its title, reading time and feeds."""

    def __init__(self, no_cache: bool = False, http: Optional[Http] = None,
                 cache: Optional[Cache] = None):
        self.no_cache = no_cache
        self.http = http or Http(user_agent=settings.user_agent, timeout=settings.links_timeout)
        self.cache = cache or Cache(settings.cache_path)

    def get(self, url: str) -> Response:
        url_hash = Cache.hash(url)
        if not self.no_cache:
            cached_response = self.cache.get(url_hash, settings.cache_validity)
            if cached_response:
                return Response.from_text(cached_response)

        response = self.http.get(url)
        self.cache.save(url_hash, response.to_text())
        return response

    def fetch(self, link: Link) -> Dict[str, Any]:
        """Fetch the link and update its attributes (the caller saves it)."""
        response = self.get(link.url)

        link.fetched_at = utils.utcnow()
        link.fetched_code = response.status
        link.fetched_count = (link.fetched_count or 0) + 1

        if not response.success:
            link.fetched_error = response.data or f"HTTP {response.status}"
            record_link_fetch(False)
            logger.info(f"Link {link.url} failed ({response.status})")
            return {"status": response.status, "error": link.fetched_error}

        link.fetched_error = None
        content_type = response.header("content-type", "")

        if is_feed_content_type(content_type):
            link.set_feed_urls([link.url])
        elif is_html_content_type(content_type):
            self._update_from_html(link, response.data)

        record_link_fetch(True)
        return {"status": response.status, "error": None}

    @staticmethod
    def _update_from_html(link: Link, html: str) -> None:
        soup = BeautifulSoup(html, "html.parser")

        title = extract_title(soup)
        if title and link.title == link.url:
            link.title = title

        link.reading_time = utils.reading_time(count_words(html, soup))
        link.set_feed_urls(discover_feed_urls(html, link.url))
