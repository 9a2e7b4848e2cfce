"""Tests for the HTTP client and its responses."""

from unittest.mock import Mock

import requests

from pipelines.http import Http, Response, decode_content


class TestDecodeContent:
    def test_uses_content_type_charset(self):
        content = "café".encode("latin-1")
        assert decode_content(content, "text/html; charset=ISO-8859-1") == "café"

    def test_uses_xml_declaration(self):
        content = '<?xml version="1.0" encoding="ISO-8859-1"?><a>é</a>'.encode("latin-1")
        assert decode_content(content, "application/xml").endswith("<a>é</a>")

    def test_uses_meta_charset(self):
        content = '<html><head><meta charset="windows-1252"></head>€</html>'.encode("cp1252")
        assert "€" in decode_content(content, "text/html")

    def test_defaults_to_utf8_and_strips_bom(self):
        content = "\ufeffcafé".encode("utf-8")
        assert decode_content(content) == "café"

    def test_invalid_declared_charset_falls_back(self):
        content = "café".encode("utf-8")
        assert decode_content(content, "text/html; charset=unknown-charset") == "café"


class TestResponse:
    def test_success(self):
        assert Response(200).success
        assert Response(204).success
        assert not Response(301).success
        assert not Response(0).success

    def test_headers_are_case_insensitive(self):
        response = Response(200, {"Content-Type": "text/html"})
        assert response.header("content-type") == "text/html"
        assert response.header("X-Missing", "default") == "default"

    def test_text_serialization(self):
        response = Response(200, {"Content-Type": "application/rss+xml"}, "<rss>\r\n\r\n</rss>")

        restored = Response.from_text(response.to_text())

        assert restored.status == 200
        assert restored.header("content-type") == "application/rss+xml"
        assert restored.data == "<rss>\r\n\r\n</rss>"

    def test_from_text_with_invalid_status_line(self):
        response = Response.from_text("garbage\r\n\r\nbody")
        assert response.status == 0
        assert response.data == "body"


class TestHttp:
    def test_get_returns_response(self):
        session = Mock(spec=requests.Session)
        session.headers = {}
        raw = Mock(status_code=200, headers={"content-type": "text/plain; charset=utf-8"}, content=b"hello")
        session.request.return_value = raw

        http = Http(user_agent="flusio-test", timeout=3, session=session)
        response = http.get("https://flus.fr/")

        assert response.status == 200
        assert response.data == "hello"
        assert session.headers["User-Agent"] == "flusio-test"
        session.request.assert_called_once_with(
            "GET", "https://flus.fr/", timeout=3, allow_redirects=True, params=None, headers=None
        )

    def test_network_errors_give_status_zero(self):
        session = Mock(spec=requests.Session)
        session.headers = {}
        session.request.side_effect = requests.ConnectionError("connection refused")

        response = Http(session=session).get("https://flus.fr/")

        assert response.status == 0
        assert "connection refused" in response.data
        assert not response.success
