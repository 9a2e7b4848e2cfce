"""Tests for RSS/Atom parsing and feeds discovery."""

from datetime import datetime

import pytest

from conftest import ATOM_FEED, RSS_FEED
from pipelines.feeds import (Feed, FeedParseError, discover_feed_urls,
                             is_feed_content_type, is_html_content_type)


class TestFeedFromText:
    def test_parses_rss(self):
        feed = Feed.from_text(RSS_FEED)

        assert feed.type == "rss"
        assert feed.title == "Carnet de Flus"
        assert feed.description == "Le carnet de Flus"
        assert feed.link == "https://flus.fr/carnet/"
        assert len(feed.entries) == 2

        entry = feed.entries[0]
        assert entry.title == "Première entrée"
        assert entry.link == "https://flus.fr/carnet/premiere-entree.html"
        assert entry.id == "https://flus.fr/carnet/premiere-entree.html"
        assert entry.published_at == datetime(2021, 3, 1, 10, 0, 0)

    def test_parses_atom(self):
        feed = Feed.from_text(ATOM_FEED)

        assert feed.type == "atom"
        assert feed.title == "Marien’s blog"
        assert feed.description == "Notes about the web"
        assert feed.link == "https://marienfressinaud.fr/"
        assert [entry.link for entry in feed.entries] == ["https://marienfressinaud.fr/atom-entry.html"]
        assert feed.entries[0].published_at == datetime(2021, 3, 2, 10, 0, 0)

    def test_entry_without_link(self):
        text = RSS_FEED.replace("<link>https://flus.fr/carnet/seconde-entree.html</link>", "")
        # A permalink guid would be used as the link
        text = text.replace(
            "<guid>https://flus.fr/carnet/seconde-entree.html</guid>",
            '<guid isPermaLink="false">seconde-entree</guid>',
        )

        feed = Feed.from_text(text)

        assert feed.entries[1].link == ""

    def test_relative_links_are_resolved_against_the_base_url(self):
        text = ATOM_FEED.replace(
            "https://marienfressinaud.fr/atom-entry.html", "/atom-entry.html"
        )

        feed = Feed.from_text(text, "https://marienfressinaud.fr/feeds/all.atom.xml")

        assert feed.entries[0].link == "https://marienfressinaud.fr/atom-entry.html"

    def test_absolute_links_are_kept(self):
        feed = Feed.from_text(RSS_FEED, "https://example.com/feed.xml")

        assert feed.entries[0].link == "https://flus.fr/carnet/premiere-entree.html"
        assert feed.link == "https://flus.fr/carnet/"

    @pytest.mark.parametrize("text", ["", "   "])
    def test_empty_document(self, text):
        with pytest.raises(FeedParseError):
            Feed.from_text(text)

    def test_html_document(self):
        with pytest.raises(FeedParseError):
            Feed.from_text("<html><head><title>Not a feed</title></head><body></body></html>")


@pytest.mark.parametrize("content_type, expected", [
    ("application/rss+xml", True),
    ("application/atom+xml; charset=utf-8", True),
    ("text/xml", True),
    ("Application/XML", True),
    ("text/html", False),
    ("", False),
    (None, False),
])
def test_is_feed_content_type(content_type, expected):
    assert is_feed_content_type(content_type) is expected


@pytest.mark.parametrize("content_type, expected", [
    ("text/html; charset=utf-8", True),
    ("Text/HTML", True),
    ("application/xhtml+xml", True),
    ("application/rss+xml", False),
    (None, False),
])
def test_is_html_content_type(content_type, expected):
    assert is_html_content_type(content_type) is expected


class TestDiscoverFeedUrls:
    def test_returns_alternate_feeds(self):
        html = """
            <html><head>
              <link rel="alternate" type="application/atom+xml" href="/feeds/all.atom.xml">
              <link rel="alternate" type="application/rss+xml" href="https://flus.fr/rss.xml">
              <link rel="alternate" type="text/html" href="/fr/">
              <link rel="stylesheet" href="/style.css">
            </head></html>
        """

        urls = discover_feed_urls(html, "https://flus.fr/carnet/")

        assert urls == ["https://flus.fr/feeds/all.atom.xml", "https://flus.fr/rss.xml"]

    def test_dedupes_urls(self):
        html = """
            <link rel="alternate" type="application/atom+xml" href="/feed.xml">
            <link rel="alternate" type="application/atom+xml" href="https://flus.fr/feed.xml">
        """

        assert discover_feed_urls(html, "https://flus.fr/") == ["https://flus.fr/feed.xml"]

    def test_no_feeds(self):
        assert discover_feed_urls("<html></html>", "https://flus.fr/") == []
