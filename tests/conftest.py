"""Shared fixtures: a fresh SQLite database per test, a temporary cache and fake HTTP."""

from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from config import database
from config.settings import settings
from pipelines.http import Response
from services import users
from services.shared.models import Collection, CollectionToTopic, Link, Topic

RSS_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Carnet de Flus</title>
    <link>https://flus.fr/carnet/</link>
    <description>Le carnet de Flus</description>
    <item>
      <title>Première entrée</title>
      <link>https://flus.fr/carnet/premiere-entree.html</link>
      <guid>https://flus.fr/carnet/premiere-entree.html</guid>
      <pubDate>Mon, 01 Mar 2021 10:00:00 +0000</pubDate>
    </item>
    <item>
      <title>Seconde entrée</title>
      <link>https://flus.fr/carnet/seconde-entree.html</link>
      <guid>https://flus.fr/carnet/seconde-entree.html</guid>
      <pubDate>Tue, 02 Mar 2021 10:00:00 +0000</pubDate>
    </item>
  </channel>
</rss>
"""

ATOM_FEED = """<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Marien’s blog</title>
  <subtitle>Notes about the web</subtitle>
  <link href="https://marienfressinaud.fr/" rel="alternate" type="text/html"/>
  <link href="https://marienfressinaud.fr/feeds/all.atom.xml" rel="self"/>
  <id>urn:uuid:60a76c80-d399-11d9-b93C-0003939e0af6</id>
  <updated>2021-03-02T10:00:00Z</updated>
  <entry>
    <title>Atom entry</title>
    <link href="https://marienfressinaud.fr/atom-entry.html" rel="alternate"/>
    <id>urn:uuid:1225c695-cfb8-4ebb-aaaa-80da344efa6a</id>
    <updated>2021-03-02T10:00:00Z</updated>
  </entry>
</feed>
"""


OPML_DOCUMENT = """<?xml version="1.0" encoding="UTF-8"?>
<opml version="2.0">
  <head><title>Subscriptions</title></head>
  <body>
    <outline text="Tech">
      <outline type="rss" text="Carnet de Flus" xmlUrl="https://flus.fr/carnet/feeds/all.atom.xml"/>
      <outline type="rss" text="Marien" xmlUrl="https://marienfressinaud.fr/feeds/all.atom.xml"/>
    </outline>
  </body>
</opml>
"""

class FakeHttp:
    """Replace ``pipelines.http.Http``: returns canned responses and records the requests."""

    def __init__(self, responses: Optional[Dict[str, Response]] = None):
        self.responses = responses or {}
        self.requests: List[str] = []

    def get(self, url, params=None, headers=None) -> Response:
        self.requests.append(url)
        return self.responses.get(url, Response(404, {"Content-Type": "text/plain"}, "Not found"))

    def post(self, url, json=None, headers=None) -> Response:
        self.requests.append(url)
        return self.responses.get(url, Response(404, {"Content-Type": "text/plain"}, "Not found"))


def feed_response(text: str = RSS_FEED, content_type: str = "application/rss+xml") -> Response:
    return Response(200, {"Content-Type": content_type}, text)


@pytest.fixture(autouse=True)
def database_url(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "cache_path", str(tmp_path / "cache"))
    monkeypatch.setattr(settings, "support_email", "support@example.com")
    url = f"sqlite:///{tmp_path / 'flusio.db'}"
    database.configure_database(url)
    return url


@pytest.fixture
def schema(database_url):
    database.create_schema()


@pytest.fixture
def db(schema):
    session = database.SessionLocal()
    yield session
    session.close()


@pytest.fixture
def fake_http():
    return FakeHttp()


@pytest.fixture
def make_user(db):
    counter = {"value": 0}

    def _make_user(email=None, username="alix", password="secret"):
        counter["value"] += 1
        user = users.create_user(
            db,
            email or f"user{counter['value']}@example.com",
            username,
            password,
            validated=True,
        )
        db.commit()
        return user

    return _make_user


@pytest.fixture
def make_collection(db):
    def _make_collection(user, name="My collection", is_public=False, description=""):
        collection = Collection.init(user.id, name, description, is_public)
        db.add(collection)
        db.commit()
        return collection

    return _make_collection


@pytest.fixture
def make_topic(db):
    def _make_topic(label="Culture", image_url=None, collections=()):
        topic = Topic.init(label, image_url)
        db.add(topic)
        db.flush()
        for collection in collections:
            db.add(CollectionToTopic(collection_id=collection.id, topic_id=topic.id, created_at=topic.created_at))
        db.commit()
        return topic

    return _make_topic


@pytest.fixture
def make_feed(db):
    def _make_feed(url="https://flus.fr/carnet/feeds/all.atom.xml", owner=None):
        owner = owner or users.support_user(db)
        collection = Collection.init_feed(owner.id, url)
        db.add(collection)
        db.commit()
        return collection

    return _make_feed


@pytest.fixture
def make_link(db):
    def _make_link(user, url="https://example.com/article", title=None, is_hidden=False,
                   collections=()):
        from services.shared import dao

        link = Link.init(url, user.id, is_hidden)
        if title:
            link.title = title
        db.add(link)
        db.flush()
        dao.attach_links(db, [(link.id, collection.id) for collection in collections])
        db.commit()
        return link

    return _make_link


@pytest.fixture
def client(schema):
    from server.app import app

    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def login(db, client, make_user):
    """Connect a user on the test client and send their CSRF token."""
    def _login(user=None):
        user = user or make_user()
        session = users.create_session(db, user)
        db.commit()
        client.headers["Authorization"] = f"Bearer {session.token}"
        client.headers["X-CSRF-Token"] = user.csrf
        return user

    return _login
