"""URL helpers: sanitization (used to dedupe links) and validation."""

import re
from typing import Optional
from urllib.parse import quote, urlsplit, urlunsplit

SCHEME_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")
DEFAULT_PORTS = {"http": 80, "https": 443}

PATH_SAFE_CHARS = "/%:@!$&'()*+,;=-._~"
QUERY_SAFE_CHARS = "/%:@!$&'()*+,;=-._~?[]"


def _sanitize_host(hostname: str) -> str:
    hostname = hostname.lower().rstrip(".")
    try:
        hostname = hostname.encode("idna").decode("ascii")
    except UnicodeError:
        pass
    if ":" in hostname:
        # IPv6 literal
        hostname = f"[{hostname}]"
    return hostname


def sanitize(url: str) -> str:
    """Return a normalized version of the URL.

    Two URLs pointing to the same resource with cosmetic differences (case
    of the host, default port, unescaped characters...) give the same
    result, so the sanitized URL can be used to dedupe links.
    """
    url = (url or "").strip()
    if not url:
        return ""

    if not SCHEME_PATTERN.match(url):
        url = "http://" + url.lstrip("/")

    parts = urlsplit(url)
    scheme = parts.scheme.lower()

    netloc = parts.netloc
    if parts.hostname:
        netloc = _sanitize_host(parts.hostname)
        try:
            port = parts.port
        except ValueError:
            port = None
        if port and DEFAULT_PORTS.get(scheme) != port:
            netloc = f"{netloc}:{port}"
        if parts.username is not None:
            userinfo = parts.username
            if parts.password is not None:
                userinfo = f"{userinfo}:{parts.password}"
            netloc = f"{userinfo}@{netloc}"

    path = quote(parts.path, safe=PATH_SAFE_CHARS) or "/"
    query = quote(parts.query, safe=QUERY_SAFE_CHARS)
    fragment = quote(parts.fragment, safe=QUERY_SAFE_CHARS)

    return urlunsplit((scheme, netloc, path, query, fragment))


def validate(url: str) -> Optional[str]:
    """Return an error message if the URL can't be saved as a link."""
    if not url:
        return "The link is required."

    try:
        parts = urlsplit(url)
        hostname = parts.hostname
    except ValueError:
        return "The link is invalid."

    if parts.scheme not in ("http", "https"):
        return "Link scheme must be either http or https."

    if not hostname:
        return "The link is invalid."

    if parts.password:
        return "The link must not include a password as it’s sensitive data."

    return None


def host(url: str) -> str:
    hostname = urlsplit(url).hostname or ""
    if hostname.startswith("www."):
        hostname = hostname[4:]
    return hostname
