"""Client of the Pocket v3 API."""

import json
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

from config.settings import settings
from pipelines.http import Http

logger = logging.getLogger(__name__)

API_URL = "https://getpocket.com/v3"
AUTHORIZE_URL = "https://getpocket.com/auth/authorize"


class PocketError(Exception):
    """Raised when the Pocket API returns an error."""

    def __init__(self, status: int, message: str):
        self.status = status
        super().__init__(f"Pocket API error ({status}): {message}")


class Pocket:
    """Wrap the OAuth and retrieve endpoints of Pocket."""

    def __init__(self, consumer_key: Optional[str] = None, http: Optional[Http] = None):
        self.consumer_key = consumer_key or settings.pocket_consumer_key
        self.http = http or Http(user_agent=settings.user_agent, timeout=30)

    def _post(self, endpoint: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        payload = {"consumer_key": self.consumer_key, **payload}
        response = self.http.post(
            f"{API_URL}{endpoint}",
            json=payload,
            headers={"X-Accept": "application/json"},
        )
        if not response.success:
            message = response.header("X-Error") or response.data or "unknown error"
            logger.warning(f"Pocket {endpoint} failed with {response.status}: {message}")
            raise PocketError(response.status, message)

        try:
            return json.loads(response.data)
        except ValueError as e:
            raise PocketError(response.status, f"invalid JSON: {e}") from e

    def request_token(self, redirect_uri: str) -> str:
        """Return a request token to send the user to the authorization page."""
        data = self._post("/oauth/request", {"redirect_uri": redirect_uri})
        return data["code"]

    @staticmethod
    def authorization_url(request_token: str, redirect_uri: str) -> str:
        query = urlencode({"request_token": request_token, "redirect_uri": redirect_uri})
        return f"{AUTHORIZE_URL}?{query}"

    def authorize(self, request_token: str) -> Dict[str, str]:
        """Exchange an authorized request token for an access token and username."""
        data = self._post("/oauth/authorize", {"code": request_token})
        return {"access_token": data["access_token"], "username": data.get("username", "")}

    def retrieve(self, access_token: str, count: int = 500, offset: int = 0,
                 **parameters) -> List[Dict[str, Any]]:
        """Return one page of the items saved in Pocket."""
        payload = {
            "access_token": access_token,
            "state": "all",
            "detailType": "complete",
            "sort": "oldest",
            "count": count,
            "offset": offset,
            **parameters,
        }
        data = self._post("/get", payload)
        items = data.get("list") or {}
        # Pocket returns an empty list instead of an empty object at the end
        if isinstance(items, list):
            return items
        return list(items.values())

    def retrieve_all(self, access_token: str, page_size: int = 500) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        offset = 0
        while True:
            page = self.retrieve(access_token, count=page_size, offset=offset)
            items.extend(page)
            if len(page) < page_size:
                return items
            offset += page_size
