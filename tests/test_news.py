"""Tests for the news of the users."""

from datetime import timedelta

import pytest

from services import news
from services.shared import dao, utils
from services.shared.errors import NotFoundError
from services.shared.models import Link


@pytest.fixture
def reader(make_user):
    return make_user(email="reader@example.com", username="reader")


@pytest.fixture
def followed(db, reader, make_user, make_collection):
    author = make_user(email="author@example.com", username="author")
    collection = make_collection(author, "Shared", is_public=True)
    dao.follow(db, reader.id, collection.id)
    db.commit()
    return collection


def _news_urls(db, user):
    collection = dao.collection_of_type(db, user.id, "news")
    return sorted(link.url for link in dao.links_of_collection(db, collection.id))


class TestNewsPicker:
    def test_picks_recent_links_of_followed_collections(self, db, reader, followed, make_link):
        make_link(followed.user, "https://flus.fr/recent", title="Recent", collections=[followed])
        old = make_link(followed.user, "https://flus.fr/old", collections=[followed])
        old.created_at = utils.utcnow() - timedelta(days=30)
        db.commit()

        picked = news.NewsPicker().pick(db, reader)
        db.commit()

        assert [link.url for link in picked] == ["https://flus.fr/recent"]
        assert picked[0].user_id == reader.id
        assert picked[0].title == "Recent"
        assert _news_urls(db, reader) == ["https://flus.fr/recent"]

    def test_ignores_hidden_links(self, db, reader, followed, make_link):
        make_link(followed.user, "https://flus.fr/hidden", is_hidden=True, collections=[followed])

        assert news.NewsPicker().pick(db, reader) == []

    def test_ignores_private_collections(self, db, reader, followed, make_link):
        followed.is_public = False
        db.commit()
        make_link(followed.user, "https://flus.fr/private", collections=[followed])

        assert news.NewsPicker().pick(db, reader) == []

    def test_ignores_links_the_user_already_has(self, db, reader, followed, make_link):
        make_link(followed.user, "https://flus.fr/known", collections=[followed])
        make_link(reader, "https://flus.fr/known")

        assert news.NewsPicker().pick(db, reader) == []

    def test_keeps_feed_publication_date(self, db, reader, followed, make_link):
        link = make_link(followed.user, "https://flus.fr/entry", collections=[followed])
        published_at = utils.utcnow().replace(microsecond=0) - timedelta(days=1)
        link.feed_published_at = published_at
        db.commit()

        picked = news.NewsPicker().pick(db, reader)

        assert picked[0].feed_published_at == published_at

    def test_limits_the_number_of_links(self, db, reader, followed, make_link):
        for i in range(5):
            make_link(followed.user, f"https://flus.fr/{i}", collections=[followed])

        picked = news.NewsPicker(max_links=3).pick(db, reader)

        assert len(picked) == 3

    def test_picking_twice_does_not_duplicate(self, db, reader, followed, make_link):
        make_link(followed.user, "https://flus.fr/once", collections=[followed])
        news.NewsPicker().pick(db, reader)
        db.commit()

        assert news.NewsPicker().pick(db, reader) == []

    def test_user_without_news_collection(self, db, reader):
        db.delete(dao.collection_of_type(db, reader.id, "news"))
        db.commit()

        with pytest.raises(NotFoundError):
            news.NewsPicker().pick(db, reader)


class TestNewsActions:
    @pytest.fixture
    def news_link(self, db, reader, make_link):
        news_collection = dao.collection_of_type(db, reader.id, "news")
        bookmarks = dao.collection_of_type(db, reader.id, "bookmarks")
        return make_link(reader, "https://flus.fr/news", collections=[news_collection, bookmarks])

    def test_mark_news_as_read(self, db, reader, news_link):
        assert news.mark_news_as_read(db, reader) == 1
        db.commit()

        db.expire_all()
        types = {collection.type for collection in db.get(Link, news_link.id).collections}
        assert types == {"read"}

    def test_read_news_later(self, db, reader, news_link):
        assert news.read_news_later(db, reader) == 1
        db.commit()

        db.expire_all()
        types = {collection.type for collection in db.get(Link, news_link.id).collections}
        assert types == {"bookmarks"}

    def test_empty_news(self, db, reader):
        assert news.mark_news_as_read(db, reader) == 0
