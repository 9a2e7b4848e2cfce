"""On-disk cache for fetched HTTP responses.

Entries are gzip-compressed text files named after the hash of their key,
and expire based on their modification time.
"""

import gzip
import hashlib
import logging
import time
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class Cache:
    """Time-boxed, hash-keyed file cache."""

    def __init__(self, path: str):
        self.path = Path(path)

    @staticmethod
    def hash(text: str) -> str:
        """Generate the cache key for the given text (usually a URL)."""
        return hashlib.sha256(text.encode("utf-8")).hexdigest()

    def _entry_path(self, key: str) -> Path:
        return self.path / key

    def get(self, key: str, validity: Optional[int] = None) -> Optional[str]:
        """Return the cached text, or None if missing or older than validity seconds."""
        entry = self._entry_path(key)
        if not entry.is_file():
            return None

        if validity is not None:
            age = time.time() - entry.stat().st_mtime
            if age > validity:
                logger.debug(f"Cache entry {key} expired ({age:.0f}s old)")
                return None

        try:
            return gzip.decompress(entry.read_bytes()).decode("utf-8")
        except (OSError, EOFError, UnicodeDecodeError) as e:
            logger.warning(f"Cache entry {key} is corrupted: {e}")
            return None

    def save(self, key: str, text: str) -> bool:
        try:
            self.path.mkdir(parents=True, exist_ok=True)
            self._entry_path(key).write_bytes(gzip.compress(text.encode("utf-8")))
            return True
        except OSError as e:
            logger.error(f"Cannot write cache entry {key}: {e}")
            return False

    def remove(self, key: str) -> bool:
        entry = self._entry_path(key)
        if entry.is_file():
            entry.unlink()
            return True
        return False

    def clean(self, validity: int) -> int:
        """Remove the entries older than validity seconds and return their count."""
        if not self.path.is_dir():
            return 0

        now = time.time()
        removed = 0
        for entry in self.path.iterdir():
            if entry.is_file() and now - entry.stat().st_mtime > validity:
                entry.unlink()
                removed += 1

        logger.info(f"Cache cleaned: {removed} entries removed")
        return removed
