"""Service dependencies of the routes, overridden in tests."""

from pipelines.feed_fetcher import FeedFetcher
from pipelines.link_fetcher import LinkFetcher
from services.pocket import Pocket


def get_feed_fetcher() -> FeedFetcher:
    return FeedFetcher()


def get_link_fetcher() -> LinkFetcher:
    return LinkFetcher()


def get_pocket() -> Pocket:
    return Pocket()
