"""CORS and security headers of the flusio API."""

import logging
from typing import List, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config.settings import settings

logger = logging.getLogger(__name__)

DEVELOPMENT_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:8000",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:8000"
]


def get_allowed_origins() -> List[str]:
    origins = settings.allowed_origins_list
    if origins:
        return origins

    if settings.environment == "production":
        logger.warning("No CORS origins configured in production: set FLUSIO_ALLOWED_ORIGINS")
        return []

    return list(DEVELOPMENT_ORIGINS)


def setup_cors(app: FastAPI, custom_origins: Optional[List[str]] = None) -> None:
    origins = custom_origins or get_allowed_origins()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        allow_headers=["Accept", "Content-Type", "Authorization", "X-CSRF-Token"],
        max_age=86400 if settings.environment == "production" else 600
    )
    logger.info(f"CORS configured with origins: {origins}")


class SecurityHeadersMiddleware:
    """Add security headers to all responses."""

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        security_headers = {
            b"x-content-type-options": b"nosniff",
            b"x-frame-options": b"DENY",
            b"referrer-policy": b"strict-origin-when-cross-origin",
        }
        # HSTS only makes sense behind HTTPS
        if settings.environment == "production":
            security_headers[b"strict-transport-security"] = b"max-age=31536000; includeSubDomains"

        async def send_wrapper(message):
            if message["type"] == "http.response.start":
                headers = list(message.get("headers", []))
                present = {name.lower() for name, _ in headers}
                headers.extend(
                    (name, value) for name, value in security_headers.items()
                    if name not in present
                )
                message["headers"] = headers
            await send(message)

        await self.app(scope, receive, send_wrapper)


def setup_api_security(app: FastAPI, custom_origins: Optional[List[str]] = None) -> None:
    setup_cors(app, custom_origins)
    app.add_middleware(SecurityHeadersMiddleware)
    logger.info("API security configuration complete")
