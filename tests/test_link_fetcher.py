"""Tests for the fetching of links."""

from unittest.mock import patch

import pytest
from bs4 import BeautifulSoup

from conftest import FakeHttp, feed_response
from pipelines.cache import Cache
from pipelines.http import Response
from pipelines.link_fetcher import LinkFetcher, count_words, extract_title
from services.shared.models import Link

URL = "https://flus.fr/carnet/premiere-entree.html"

PAGE = """<html>
<head>
  <title>
    Première   entrée
  </title>
  <link rel="alternate" type="application/atom+xml" href="/carnet/feeds/all.atom.xml">
</head>
<body><article><p>{words}</p></article></body>
</html>"""


@pytest.fixture
def http():
    return FakeHttp()


@pytest.fixture
def fetcher(http, tmp_path):
    return LinkFetcher(http=http, cache=Cache(str(tmp_path / "cache")))


def html_response(words: int = 10) -> Response:
    return Response(
        200,
        {"Content-Type": "text/html; charset=utf-8"},
        PAGE.format(words=" ".join(["word"] * words)),
    )


class TestExtractTitle:
    def test_prefers_og_title(self):
        soup = BeautifulSoup(
            '<head><meta property="og:title" content="OG title"><title>Title</title></head>',
            "html.parser",
        )
        assert extract_title(soup) == "OG title"

    def test_normalizes_whitespace(self):
        soup = BeautifulSoup(PAGE, "html.parser")
        assert extract_title(soup) == "Première entrée"

    def test_no_title(self):
        assert extract_title(BeautifulSoup("<p>Hello</p>", "html.parser")) == ""


def test_count_words_falls_back_to_page_text():
    html = "<html><body><p>one two three</p></body></html>"
    with patch("pipelines.link_fetcher.extract", return_value=None):
        assert count_words(html, BeautifulSoup(html, "html.parser")) == 3


class TestLinkFetcherFetch:
    def test_updates_link_from_html(self, http, fetcher):
        http.responses[URL] = html_response(words=600)
        link = Link.init(URL, "1")

        with patch("pipelines.link_fetcher.extract", return_value=" ".join(["word"] * 600)):
            result = fetcher.fetch(link)

        assert result == {"status": 200, "error": None}
        assert link.title == "Première entrée"
        assert link.reading_time == 3
        assert link.feed_urls() == ["https://flus.fr/carnet/feeds/all.atom.xml"]
        assert link.fetched_code == 200
        assert link.fetched_count == 1
        assert link.fetched_at is not None
        assert link.fetched_error is None

    def test_keeps_custom_title(self, http, fetcher):
        http.responses[URL] = html_response()
        link = Link.init(URL, "1")
        link.title = "My title"

        fetcher.fetch(link)

        assert link.title == "My title"

    def test_content_type_is_case_insensitive(self, http, fetcher):
        http.responses[URL] = Response(200, {"Content-Type": "Text/HTML"}, PAGE.format(words="hello"))
        link = Link.init(URL, "1")

        fetcher.fetch(link)

        assert link.title == "Première entrée"
        assert link.feed_urls() == ["https://flus.fr/carnet/feeds/all.atom.xml"]

    def test_feed_url(self, http, fetcher):
        http.responses[URL] = feed_response()
        link = Link.init(URL, "1")

        fetcher.fetch(link)

        assert link.feed_urls() == [URL]
        assert link.is_feed_url()

    def test_http_error(self, http, fetcher):
        link = Link.init(URL, "1")

        result = fetcher.fetch(link)

        assert result == {"status": 404, "error": "Not found"}
        assert link.fetched_code == 404
        assert link.fetched_error == "Not found"
        assert link.fetched_count == 1
        assert link.title == URL

    def test_error_without_body(self, http, fetcher):
        http.responses[URL] = Response(503, {}, "")
        link = Link.init(URL, "1")

        fetcher.fetch(link)

        assert link.fetched_error == "HTTP 503"

    def test_counts_attempts(self, http, tmp_path):
        fetcher = LinkFetcher(no_cache=True, http=http, cache=Cache(str(tmp_path / "cache")))
        link = Link.init(URL, "1")

        fetcher.fetch(link)
        fetcher.fetch(link)

        assert link.fetched_count == 2
        assert http.requests == [URL, URL]
