"""Pipelines package for flusio.

Provides fetching functionality: URL sanitization, HTTP client, response
cache and RSS/Atom parsing. The fetchers built on top of them live in
``pipelines.feed_fetcher`` and ``pipelines.link_fetcher``.
"""

from .url import sanitize, validate, host
from .cache import Cache
from .http import Http, Response, decode_content
from .feeds import (Feed, Entry, FeedParseError, is_feed_content_type, is_html_content_type,
                    discover_feed_urls)

__all__ = [
    # URL
    'sanitize',
    'validate',
    'host',

    # Cache
    'Cache',

    # HTTP
    'Http',
    'Response',
    'decode_content',

    # Feeds
    'Feed',
    'Entry',
    'FeedParseError',
    'is_feed_content_type',
    'is_html_content_type',
    'discover_feed_urls'
]
