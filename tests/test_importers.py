"""Tests for the Pocket and OPML importations."""

from datetime import datetime

import pytest

from services import importers
from services.shared import dao
from services.shared.errors import ValidationError
from services.shared.models import Collection, Importation, Link

OPML = """<?xml version="1.0" encoding="UTF-8"?>
<opml version="2.0">
  <head><title>Subscriptions</title></head>
  <body>
    <outline type="rss" text="Carnet de Flus" xmlUrl="https://flus.fr/carnet/feeds/all.atom.xml"/>
    <outline type="rss" text="Same" xmlUrl="HTTPS://FLUS.FR/carnet/feeds/all.atom.xml"/>
    <outline type="rss" text="Invalid" xmlUrl="ftp://flus.fr/feed.xml"/>
  </body>
</opml>
"""


class TestCreateImportation:
    def test_only_one_ongoing_importation(self, db, make_user):
        user = make_user()
        importers.create_importation(db, user, "pocket")

        with pytest.raises(ValidationError) as excinfo:
            importers.create_importation(db, user, "pocket")

        assert excinfo.value.errors == {"importation": "You already have an ongoing pocket importation."}

    def test_replaces_finished_importation(self, db, make_user):
        user = make_user()
        first = importers.create_importation(db, user, "opml")
        first.finish()
        db.flush()

        second = importers.create_importation(db, user, "opml")

        assert db.query(Importation).filter(Importation.user_id == user.id).all() == [second]

    def test_types_are_independent(self, db, make_user):
        user = make_user()
        importers.create_importation(db, user, "pocket")
        importers.create_importation(db, user, "opml")

        assert db.query(Importation).count() == 2


class TestPocketImporter:
    def _user_links(self, db, user):
        return {link.url: link for link in db.query(Link).filter(Link.user_id == user.id)}

    def test_imports_unread_items_in_bookmarks(self, db, make_user):
        user = make_user()
        items = [{
            "given_url": "https://flus.fr/",
            "resolved_url": "https://flus.fr/carnet/",
            "given_title": "Given",
            "resolved_title": "Carnet",
            "status": "0",
            "time_added": "1614592800",
        }]

        result = importers.PocketImporter(db, user).import_items(items)

        assert result == {"links_created": 1, "links_attached": 1}
        link = self._user_links(db, user)["https://flus.fr/carnet/"]
        assert link.title == "Carnet"
        assert link.created_at == datetime(2021, 3, 1, 10, 0, 0)
        bookmarks = dao.collection_of_type(db, user.id, "bookmarks")
        assert dao.collection_ids_of_link(db, link.id) == [bookmarks.id]

    def test_archived_items_are_not_bookmarked(self, db, make_user):
        user = make_user()

        result = importers.PocketImporter(db, user).import_items([
            {"given_url": "https://flus.fr/", "status": "1"},
        ])

        assert result == {"links_created": 1, "links_attached": 0}

    def test_skips_deleted_and_invalid_items(self, db, make_user):
        user = make_user()

        result = importers.PocketImporter(db, user).import_items([
            {"given_url": "https://flus.fr/deleted", "status": "2"},
            {"given_url": "ftp://flus.fr/", "status": "0"},
            {"given_url": "", "status": "0"},
        ])

        assert result["links_created"] == 0
        assert self._user_links(db, user) == {}

    def test_favorites_collection(self, db, make_user):
        user = make_user()

        importers.PocketImporter(db, user).import_items([
            {"given_url": "https://flus.fr/a", "status": "1", "favorite": "1"},
            {"given_url": "https://flus.fr/b", "status": "1", "favorite": "1"},
        ])

        favorites = db.query(Collection).filter_by(user_id=user.id, name="Pocket favorite").all()
        assert len(favorites) == 1
        assert len(dao.links_of_collection(db, favorites[0].id)) == 2

    def test_tags_become_collections(self, db, make_user, make_collection):
        user = make_user()
        existing = make_collection(user, "Tech")
        item = {
            "given_url": "https://flus.fr/",
            "status": "1",
            "tags": {"tech": {"tag": "tech"}, "web": {"tag": "web"}},
        }

        importers.PocketImporter(db, user).import_items([item], {"ignore_tags": False})

        link = self._user_links(db, user)["https://flus.fr/"]
        collection_ids = set(dao.collection_ids_of_link(db, link.id))
        web = db.query(Collection).filter_by(user_id=user.id, name="web").one()
        assert collection_ids == {existing.id, web.id}

    def test_tags_are_ignored_by_default(self, db, make_user):
        user = make_user()

        importers.PocketImporter(db, user).import_items([
            {"given_url": "https://flus.fr/", "status": "0", "tags": {"web": {"tag": "web"}}},
        ])

        assert db.query(Collection).filter_by(user_id=user.id, type="collection").count() == 0

    def test_existing_links_are_reused(self, db, make_user, make_link):
        user = make_user()
        link = make_link(user, "https://flus.fr/")

        result = importers.PocketImporter(db, user).import_items([
            {"given_url": "https://FLUS.fr", "status": "0"},
        ])

        assert result == {"links_created": 0, "links_attached": 1}
        assert list(self._user_links(db, user)) == [link.url]


class TestOpmlImporter:
    def test_feed_urls(self):
        assert importers.OpmlImporter.feed_urls(OPML) == ["https://flus.fr/carnet/feeds/all.atom.xml"]

    @pytest.mark.parametrize("text", ["<opml", "not xml at all"])
    def test_feed_urls_of_invalid_document(self, text):
        with pytest.raises(ValidationError) as excinfo:
            importers.OpmlImporter.feed_urls(text)

        assert "opml" in excinfo.value.errors

    def test_import_follows_feeds(self, db, make_user, make_feed):
        user = make_user()
        existing = make_feed("https://marienfressinaud.fr/feeds/all.atom.xml")
        text = OPML.replace(
            "ftp://flus.fr/feed.xml",
            "https://marienfressinaud.fr/feeds/all.atom.xml",
        )

        created = importers.OpmlImporter(db, user).import_opml(text)

        assert [collection.feed_url for collection in created] == [
            "https://flus.fr/carnet/feeds/all.atom.xml",
        ]
        assert created[0].type == "feed"
        assert created[0].is_public
        assert dao.is_following(db, user.id, created[0].id)
        assert dao.is_following(db, user.id, existing.id)

    def test_import_twice(self, db, make_user):
        user = make_user()
        importers.OpmlImporter(db, user).import_opml(OPML)

        assert importers.OpmlImporter(db, user).import_opml(OPML) == []
        assert db.query(Collection).filter_by(type="feed").count() == 1
