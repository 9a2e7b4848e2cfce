"""HTTP client used to fetch feeds, links and external APIs.

``Http`` never raises on network errors: it returns a ``Response`` with a
status of 0 and the error message as data, so callers can store the failure
like any other HTTP error.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import requests
from bs4 import UnicodeDammit
from requests.structures import CaseInsensitiveDict

from config.settings import settings

logger = logging.getLogger(__name__)

CHARSET_PATTERN = re.compile(r"charset=[\"']?([\w.:-]+)", re.I)
XML_ENCODING_PATTERN = re.compile(rb"^\s*<\?xml[^>]*encoding=[\"']([\w.:-]+)[\"']", re.I)
META_CHARSET_PATTERN = re.compile(rb"<meta[^>]+charset=[\"']?([\w.:-]+)", re.I)


def _normalize_encoding(encoding: str) -> str:
    encoding = encoding.strip().lower().replace("_", "-")
    if encoding in ("utf-8", "utf8"):
        return "utf-8-sig"
    return encoding


def decode_content(content: bytes, content_type: Optional[str] = None) -> str:
    """Decode a response body to Unicode.

    The charset of the Content-Type header wins, then the XML declaration,
    then the HTML meta charset, then UTF-8. Detection is the last resort.
    """
    candidates = []

    match = CHARSET_PATTERN.search(content_type or "")
    if match:
        candidates.append(match.group(1))

    head = content[:4096]
    match = XML_ENCODING_PATTERN.match(head)
    if match:
        candidates.append(match.group(1).decode("ascii", "ignore"))

    match = META_CHARSET_PATTERN.search(head)
    if match:
        candidates.append(match.group(1).decode("ascii", "ignore"))

    candidates.append("utf-8")

    for encoding in candidates:
        try:
            return content.decode(_normalize_encoding(encoding))
        except (LookupError, UnicodeDecodeError):
            continue

    dammit = UnicodeDammit(content)
    if dammit.unicode_markup is not None:
        return dammit.unicode_markup
    return content.decode("utf-8", errors="replace")


@dataclass
class Response:
    """An HTTP response with a Unicode body."""
    status: int
    headers: Mapping[str, str] = field(default_factory=dict)
    data: str = ""

    def __post_init__(self):
        self.headers = CaseInsensitiveDict(self.headers or {})

    @property
    def success(self) -> bool:
        return 200 <= self.status < 300

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.headers.get(name, default)

    @classmethod
    def from_requests(cls, response: requests.Response) -> "Response":
        content_type = response.headers.get("content-type", "")
        return cls(
            status=response.status_code,
            headers=dict(response.headers),
            data=decode_content(response.content, content_type),
        )

    def to_text(self) -> str:
        """Serialize the response (used to store it in the cache)."""
        lines = [f"HTTP/1.1 {self.status}"]
        for name, value in self.headers.items():
            lines.append(f"{name}: {value}")
        return "\r\n".join(lines) + "\r\n\r\n" + self.data

    @classmethod
    def from_text(cls, text: str) -> "Response":
        """Build a response from the output of ``to_text``."""
        separator = "\r\n\r\n" if "\r\n\r\n" in text else "\n\n"
        head, _, data = text.partition(separator)
        lines = head.splitlines()

        status = 0
        if lines:
            status_parts = lines[0].split()
            if len(status_parts) >= 2 and status_parts[1].isdigit():
                status = int(status_parts[1])

        headers: Dict[str, str] = {}
        for line in lines[1:]:
            name, sep, value = line.partition(":")
            if sep:
                headers[name.strip()] = value.strip()

        return cls(status=status, headers=headers, data=data)

    def __str__(self) -> str:
        return self.to_text()


class Http:
    """Thin wrapper around a requests session."""

    def __init__(self,
                 user_agent: Optional[str] = None,
                 timeout: Optional[float] = None,
                 session: Optional[requests.Session] = None):
        self.user_agent = user_agent or settings.user_agent
        self.timeout = timeout or 10
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": self.user_agent})

    def get(self, url: str, params: Optional[Dict[str, Any]] = None,
            headers: Optional[Dict[str, str]] = None) -> Response:
        return self._request("GET", url, params=params, headers=headers)

    def post(self, url: str, json: Optional[Dict[str, Any]] = None,
             headers: Optional[Dict[str, str]] = None) -> Response:
        return self._request("POST", url, json=json, headers=headers)

    def _request(self, method: str, url: str, **kwargs) -> Response:
        logger.debug(f"{method} {url}")
        try:
            response = self.session.request(
                method,
                url,
                timeout=self.timeout,
                allow_redirects=True,
                **kwargs
            )
        except requests.RequestException as e:
            logger.warning(f"{method} {url} failed: {e}")
            return Response(status=0, headers={}, data=str(e))

        return Response.from_requests(response)
