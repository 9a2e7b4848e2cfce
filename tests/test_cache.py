"""Tests for the on-disk response cache."""

import os
import time

from pipelines.cache import Cache


def _age(cache: Cache, key: str, seconds: int):
    entry = cache.path / key
    past = time.time() - seconds
    os.utime(entry, (past, past))


class TestCache:
    def test_hash_is_stable(self):
        assert Cache.hash("https://flus.fr/") == Cache.hash("https://flus.fr/")
        assert Cache.hash("https://flus.fr/") != Cache.hash("https://flus.fr/carnet/")
        assert len(Cache.hash("https://flus.fr/")) == 64

    def test_save_and_get(self, tmp_path):
        cache = Cache(str(tmp_path / "cache"))
        key = Cache.hash("https://flus.fr/")

        assert cache.save(key, "Hello é")
        assert cache.get(key) == "Hello é"

    def test_get_missing_entry(self, tmp_path):
        cache = Cache(str(tmp_path / "cache"))
        assert cache.get(Cache.hash("missing")) is None

    def test_get_expired_entry(self, tmp_path):
        cache = Cache(str(tmp_path / "cache"))
        key = Cache.hash("https://flus.fr/")
        cache.save(key, "content")
        _age(cache, key, 3601)

        assert cache.get(key, validity=3600) is None
        # Without validity, the age doesn't matter
        assert cache.get(key) == "content"

    def test_get_fresh_entry(self, tmp_path):
        cache = Cache(str(tmp_path / "cache"))
        key = Cache.hash("https://flus.fr/")
        cache.save(key, "content")
        _age(cache, key, 3000)

        assert cache.get(key, validity=3600) == "content"

    def test_corrupted_entry(self, tmp_path):
        cache = Cache(str(tmp_path / "cache"))
        key = Cache.hash("https://flus.fr/")
        cache.path.mkdir(parents=True)
        (cache.path / key).write_bytes(b"not gzip")

        assert cache.get(key) is None

    def test_remove(self, tmp_path):
        cache = Cache(str(tmp_path / "cache"))
        key = Cache.hash("https://flus.fr/")
        cache.save(key, "content")

        assert cache.remove(key)
        assert not cache.remove(key)
        assert cache.get(key) is None

    def test_clean_removes_old_entries_only(self, tmp_path):
        cache = Cache(str(tmp_path / "cache"))
        old_key = Cache.hash("old")
        new_key = Cache.hash("new")
        cache.save(old_key, "old")
        cache.save(new_key, "new")
        _age(cache, old_key, 7200)

        assert cache.clean(3600) == 1
        assert cache.get(old_key) is None
        assert cache.get(new_key) == "new"

    def test_clean_missing_directory(self, tmp_path):
        assert Cache(str(tmp_path / "nope")).clean(3600) == 0
