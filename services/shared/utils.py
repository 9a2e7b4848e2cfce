"""Small helpers shared by the models and the services."""

import math
import secrets
import time
from datetime import datetime, timezone
from typing import Dict


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (the way it is stored)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def timebased_id() -> str:
    """Return a sortable 64-bit id: 42 bits of milliseconds, 22 random bits."""
    milliseconds = int(time.time() * 1000)
    return str((milliseconds << 22) | secrets.randbits(22))


def random_hex(length: int = 64) -> str:
    return secrets.token_hex(length // 2)


def reading_time(words_count: int, words_per_minute: int = 200) -> int:
    return words_count // words_per_minute


class Pagination:
    """Split a list of elements in pages; the current page is bounded to the existing ones."""

    def __init__(self, number_elements: int, number_per_page: int, current_page: int = 1):
        self.number_elements = number_elements
        self.number_per_page = number_per_page
        self.number_pages = max(1, math.ceil(number_elements / number_per_page))
        self.current_page = min(max(1, current_page), self.number_pages)

    @property
    def offset(self) -> int:
        return (self.current_page - 1) * self.number_per_page

    def to_dict(self) -> Dict[str, int]:
        return {
            "current_page": self.current_page,
            "number_pages": self.number_pages,
            "number_per_page": self.number_per_page,
            "number_elements": self.number_elements,
        }
