"""Security package for the flusio API."""

from .auth import (
    SESSION_COOKIE,
    CSRF_ERROR,
    session_token,
    get_optional_user,
    get_current_user,
    require_csrf
)
from .cors import (
    setup_cors,
    setup_api_security,
    get_allowed_origins,
    SecurityHeadersMiddleware
)

__all__ = [
    # Authentication
    "SESSION_COOKIE",
    "CSRF_ERROR",
    "session_token",
    "get_optional_user",
    "get_current_user",
    "require_csrf",
    # CORS and security headers
    "setup_cors",
    "setup_api_security",
    "get_allowed_origins",
    "SecurityHeadersMiddleware"
]
