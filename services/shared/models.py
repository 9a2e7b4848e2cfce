"""Database models of flusio."""
import json
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import (Boolean, Column, DateTime, ForeignKey, Index, Integer,
                        String, Text, UniqueConstraint)
from sqlalchemy.orm import relationship

from config.database import Base
from pipelines import url as url_utils
from services.shared.errors import ValidationError
from services.shared.utils import random_hex, timebased_id, utcnow


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class User(Base):
    __tablename__ = "users"

    USERNAME_MAX_LENGTH = 50

    id = Column(String(32), primary_key=True, default=timebased_id)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    validated_at = Column(DateTime, nullable=True)
    email = Column(String(255), nullable=False, unique=True)
    username = Column(String(50), nullable=False)
    password_hash = Column(String(255), nullable=False)
    csrf = Column(String(64), nullable=False, default=random_hex)
    locale = Column(String(10), nullable=False, default="en_GB")

    pocket_request_token = Column(String(255), nullable=True)
    pocket_access_token = Column(String(255), nullable=True)
    pocket_username = Column(String(255), nullable=True)

    collections = relationship("Collection", back_populates="user", cascade="all, delete-orphan")

    def to_dict(self, with_private: bool = False) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "username": self.username,
            "created_at": _isoformat(self.created_at),
        }
        if with_private:
            data.update({
                "email": self.email,
                "csrf": self.csrf,
                "locale": self.locale,
                "validated_at": _isoformat(self.validated_at),
                "pocket_username": self.pocket_username,
            })
        return data


class Session(Base):
    __tablename__ = "sessions"

    token = Column(String(64), primary_key=True, default=random_hex)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    expired_at = Column(DateTime, nullable=False)
    name = Column(String(255), nullable=False, default="")
    ip = Column(String(64), nullable=False, default="")
    user_id = Column(String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    user = relationship("User")

    __table_args__ = (
        Index("idx_sessions_user_id", "user_id"),
    )

    def is_expired(self) -> bool:
        return self.expired_at <= utcnow()


class Collection(Base):
    __tablename__ = "collections"

    NAME_MAX_LENGTH = 100
    TYPES = ("bookmarks", "news", "read", "collection", "feed")

    id = Column(String(32), primary_key=True, default=timebased_id)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    type = Column(String(20), nullable=False, default="collection")
    is_public = Column(Boolean, nullable=False, default=False)
    user_id = Column(String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    group_id = Column(String(32), nullable=True)

    # Feed collections only
    feed_url = Column(Text, nullable=True)
    feed_site_url = Column(Text, nullable=True)
    feed_fetched_at = Column(DateTime, nullable=True)
    feed_fetched_code = Column(Integer, nullable=False, default=0)
    feed_fetched_error = Column(Text, nullable=True)
    feed_last_hash = Column(String(64), nullable=True)

    user = relationship("User", back_populates="collections")
    links = relationship(
        "Link",
        secondary="links_to_collections",
        viewonly=True,
        order_by="Link.created_at.desc()",
    )

    __table_args__ = (
        Index("idx_collections_user_id", "user_id"),
        Index("idx_collections_feed_url", "feed_url"),
        Index("idx_collections_type", "type"),
        Index("idx_collections_group_id", "group_id"),
    )

    @classmethod
    def init(cls, user_id: str, name: str, description: str = "",
             is_public: bool = False) -> "Collection":
        return cls(
            id=timebased_id(),
            created_at=utcnow(),
            user_id=user_id,
            name=(name or "").strip(),
            description=(description or "").strip(),
            type="collection",
            is_public=bool(is_public),
        )

    @classmethod
    def init_special(cls, user_id: str, collection_type: str) -> "Collection":
        names = {
            "bookmarks": "Bookmarks",
            "news": "News",
            "read": "Read list",
        }
        return cls(
            id=timebased_id(),
            created_at=utcnow(),
            user_id=user_id,
            name=names[collection_type],
            description="",
            type=collection_type,
            is_public=False,
        )

    @classmethod
    def init_feed(cls, user_id: str, feed_url: str) -> "Collection":
        feed_url = url_utils.sanitize(feed_url)
        return cls(
            id=timebased_id(),
            created_at=utcnow(),
            user_id=user_id,
            name=feed_url[:cls.NAME_MAX_LENGTH],
            description="",
            type="feed",
            is_public=True,
            feed_url=feed_url,
            feed_fetched_code=0,
        )

    def validate(self) -> Dict[str, str]:
        errors = {}
        if not self.name:
            errors["name"] = "The name is required."
        elif len(self.name) > self.NAME_MAX_LENGTH:
            errors["name"] = f"The name must be less than {self.NAME_MAX_LENGTH} characters."
        if self.type not in self.TYPES:
            errors["type"] = "The type is invalid."
        if self.type == "feed":
            url_error = url_utils.validate(self.feed_url)
            if url_error:
                errors["feed_url"] = url_error
        return errors

    def check(self) -> None:
        errors = self.validate()
        if errors:
            raise ValidationError(errors)

    def to_dict(self, number_links: Optional[int] = None) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "type": self.type,
            "is_public": self.is_public,
            "user_id": self.user_id,
            "group_id": self.group_id,
            "created_at": _isoformat(self.created_at),
        }
        if self.type == "feed":
            data.update({
                "feed_url": self.feed_url,
                "feed_site_url": self.feed_site_url,
                "feed_fetched_at": _isoformat(self.feed_fetched_at),
                "feed_fetched_code": self.feed_fetched_code,
                "feed_fetched_error": self.feed_fetched_error,
            })
        if number_links is not None:
            data["number_links"] = number_links
        return data


class Link(Base):
    __tablename__ = "links"

    id = Column(String(32), primary_key=True, default=timebased_id)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    title = Column(Text, nullable=False)
    url = Column(Text, nullable=False)
    url_feeds = Column(Text, nullable=False, default="[]")
    is_hidden = Column(Boolean, nullable=False, default=False)
    reading_time = Column(Integer, nullable=False, default=0)

    fetched_at = Column(DateTime, nullable=True)
    fetched_code = Column(Integer, nullable=False, default=0)
    fetched_error = Column(Text, nullable=True)
    fetched_count = Column(Integer, nullable=False, default=0)

    user_id = Column(String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    feed_entry_id = Column(Text, nullable=True)
    feed_published_at = Column(DateTime, nullable=True)

    user = relationship("User")
    collections = relationship("Collection", secondary="links_to_collections", viewonly=True)
    messages = relationship(
        "Message",
        back_populates="link",
        cascade="all, delete-orphan",
        order_by="Message.created_at",
    )

    __table_args__ = (
        UniqueConstraint("user_id", "url", name="uq_links_user_id_url"),
        Index("idx_links_user_id", "user_id"),
        Index("idx_links_fetched_at", "fetched_at"),
    )

    @classmethod
    def init(cls, url: str, user_id: str, is_hidden: bool = False) -> "Link":
        url = url_utils.sanitize(url)
        return cls(
            id=timebased_id(),
            created_at=utcnow(),
            title=url,
            url=url,
            url_feeds="[]",
            is_hidden=bool(is_hidden),
            user_id=user_id,
            reading_time=0,
            fetched_code=0,
            fetched_count=0,
        )

    @classmethod
    def copy(cls, link: "Link", user_id: str) -> "Link":
        """Copy a link to the given user."""
        return cls(
            id=timebased_id(),
            created_at=utcnow(),
            title=link.title,
            url=link.url,
            url_feeds=link.url_feeds,
            is_hidden=False,
            reading_time=link.reading_time,
            fetched_at=link.fetched_at,
            fetched_code=link.fetched_code,
            fetched_count=link.fetched_count,
            user_id=user_id,
        )

    def feed_urls(self) -> List[str]:
        return json.loads(self.url_feeds or "[]")

    def set_feed_urls(self, urls: List[str]) -> None:
        self.url_feeds = json.dumps(urls)

    def is_feed_url(self) -> bool:
        return self.url in self.feed_urls()

    def tag_uri(self, host: str) -> str:
        """Return a tag URI (RFC 4151) usable as an Atom id."""
        date = self.created_at.strftime("%Y-%m-%d")
        return f"tag:{host},{date}:links/{self.id}"

    def published_at(self) -> datetime:
        return self.feed_published_at or self.created_at

    def validate(self) -> Dict[str, str]:
        errors = {}
        url_error = url_utils.validate(self.url)
        if url_error:
            errors["url"] = url_error
        if not self.title:
            errors["title"] = "The title is required."
        return errors

    def check(self) -> None:
        errors = self.validate()
        if errors:
            raise ValidationError(errors)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "url_feeds": self.feed_urls(),
            "is_hidden": self.is_hidden,
            "reading_time": self.reading_time,
            "user_id": self.user_id,
            "created_at": _isoformat(self.created_at),
            "published_at": _isoformat(self.published_at()),
            "fetched_at": _isoformat(self.fetched_at),
            "fetched_code": self.fetched_code,
            "fetched_error": self.fetched_error,
        }


class LinkToCollection(Base):
    __tablename__ = "links_to_collections"

    id = Column(Integer, primary_key=True, autoincrement=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    link_id = Column(String(32), ForeignKey("links.id", ondelete="CASCADE"), nullable=False)
    collection_id = Column(String(32), ForeignKey("collections.id", ondelete="CASCADE"), nullable=False)

    __table_args__ = (
        UniqueConstraint("link_id", "collection_id", name="uq_links_to_collections"),
        Index("idx_links_to_collections_collection_id", "collection_id"),
    )


class FollowedCollection(Base):
    __tablename__ = "followed_collections"

    id = Column(Integer, primary_key=True, autoincrement=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    user_id = Column(String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    collection_id = Column(String(32), ForeignKey("collections.id", ondelete="CASCADE"), nullable=False)
    group_id = Column(String(32), nullable=True)

    __table_args__ = (
        UniqueConstraint("user_id", "collection_id", name="uq_followed_collections"),
        Index("idx_followed_collections_collection_id", "collection_id"),
    )


class Topic(Base):
    """A theme under which public collections are listed on the discovery page."""
    __tablename__ = "topics"

    LABEL_MAX_SIZE = 30

    id = Column(String(32), primary_key=True, default=timebased_id)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    label = Column(String(255), nullable=False)
    image_url = Column(Text, nullable=True)

    @classmethod
    def init(cls, label: str, image_url: Optional[str] = None) -> "Topic":
        return cls(
            id=timebased_id(),
            created_at=utcnow(),
            label=(label or "").strip(),
            image_url=(image_url or "").strip() or None,
        )

    def validate(self) -> Dict[str, str]:
        errors = {}
        if not self.label:
            errors["label"] = "The label is required."
        elif len(self.label) > self.LABEL_MAX_SIZE:
            errors["label"] = f"The label must be less than {self.LABEL_MAX_SIZE} characters."
        if self.image_url:
            url_error = url_utils.validate(self.image_url)
            if url_error:
                errors["image_url"] = url_error
        return errors

    def check(self) -> None:
        errors = self.validate()
        if errors:
            raise ValidationError(errors)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "image_url": self.image_url,
            "created_at": _isoformat(self.created_at),
        }


class CollectionToTopic(Base):
    __tablename__ = "collections_to_topics"

    id = Column(Integer, primary_key=True, autoincrement=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    collection_id = Column(String(32), ForeignKey("collections.id", ondelete="CASCADE"), nullable=False)
    topic_id = Column(String(32), ForeignKey("topics.id", ondelete="CASCADE"), nullable=False)

    __table_args__ = (
        UniqueConstraint("collection_id", "topic_id", name="uq_collections_to_topics"),
        Index("idx_collections_to_topics_topic_id", "topic_id"),
    )


class Group(Base):
    """A way for a user to sort their collections and the ones they follow."""
    __tablename__ = "groups"

    NAME_MAX_LENGTH = 100

    id = Column(String(32), primary_key=True, default=timebased_id)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    name = Column(String(255), nullable=False)
    user_id = Column(String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_groups_user_id_name"),
    )

    @classmethod
    def init(cls, user_id: str, name: str) -> "Group":
        return cls(
            id=timebased_id(),
            created_at=utcnow(),
            user_id=user_id,
            name=(name or "").strip(),
        )

    def validate(self) -> Dict[str, str]:
        if not self.name:
            return {"name": "The name is required."}
        if len(self.name) > self.NAME_MAX_LENGTH:
            return {"name": f"The name must be less than {self.NAME_MAX_LENGTH} characters."}
        return {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "created_at": _isoformat(self.created_at),
        }


class Message(Base):
    __tablename__ = "messages"

    id = Column(String(32), primary_key=True, default=timebased_id)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    content = Column(Text, nullable=False)
    link_id = Column(String(32), ForeignKey("links.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    link = relationship("Link", back_populates="messages")
    user = relationship("User")

    __table_args__ = (
        Index("idx_messages_link_id", "link_id"),
    )

    @classmethod
    def init(cls, user_id: str, link_id: str, content: str) -> "Message":
        content = (content or "").strip()
        if not content:
            raise ValidationError({"content": "The message is required."})
        return cls(
            id=timebased_id(),
            created_at=utcnow(),
            user_id=user_id,
            link_id=link_id,
            content=content,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content,
            "link_id": self.link_id,
            "user_id": self.user_id,
            "username": self.user.username if self.user else None,
            "created_at": _isoformat(self.created_at),
        }


class Job(Base):
    __tablename__ = "jobs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    name = Column(String(100), nullable=False)
    args = Column(Text, nullable=False, default="{}")
    queue = Column(String(50), nullable=False, default="default")
    perform_at = Column(DateTime, nullable=False, default=utcnow)
    frequency = Column(Integer, nullable=True)
    locked_at = Column(DateTime, nullable=True)
    number_attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
    failed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("idx_jobs_perform_at", "perform_at"),
        Index("idx_jobs_queue", "queue"),
    )

    @property
    def params(self) -> Dict[str, Any]:
        return json.loads(self.args or "{}")

    @property
    def status(self) -> str:
        if self.locked_at:
            return "running"
        if self.failed_at:
            return "failed"
        return "waiting"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "args": self.params,
            "queue": self.queue,
            "status": self.status,
            "perform_at": _isoformat(self.perform_at),
            "frequency": self.frequency,
            "locked_at": _isoformat(self.locked_at),
            "number_attempts": self.number_attempts,
            "last_error": self.last_error,
            "failed_at": _isoformat(self.failed_at),
        }


class Importation(Base):
    __tablename__ = "importations"

    TYPES = ("pocket", "opml")

    id = Column(Integer, primary_key=True, autoincrement=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    type = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default="ongoing")
    options = Column(Text, nullable=False, default="{}")
    error = Column(Text, nullable=True)
    user_id = Column(String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    __table_args__ = (
        Index("idx_importations_user_id", "user_id"),
    )

    @property
    def params(self) -> Dict[str, Any]:
        return json.loads(self.options or "{}")

    def finish(self) -> None:
        self.status = "finished"
        self.error = None

    def fail(self, error: str) -> None:
        self.status = "error"
        self.error = error

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "status": self.status,
            "error": self.error,
            "created_at": _isoformat(self.created_at),
        }
