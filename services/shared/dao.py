"""Queries shared by the services, the jobs and the API."""

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import and_, func
from sqlalchemy.orm import Session

from services.shared.models import (Collection, CollectionToTopic, FollowedCollection, Group, Link,
                                    LinkToCollection, Topic, User)
from services.shared.utils import utcnow


def list_link_ids_by_urls(db: Session, user_id: str) -> Dict[str, str]:
    """Return the ids of the user's links, indexed by their URL."""
    rows = db.query(Link.url, Link.id).filter(Link.user_id == user_id).all()
    return {url: link_id for url, link_id in rows}


def find_link_by_url(db: Session, user_id: str, url: str) -> Optional[Link]:
    return db.query(Link).filter(Link.user_id == user_id, Link.url == url).first()


def attach_links(db: Session, pairs: Iterable[Tuple[str, str]]) -> int:
    """Attach links to collections, ignoring the pairs which already exist.

    ``pairs`` is an iterable of (link_id, collection_id). Return the number
    of created associations.
    """
    wanted = []
    seen = set()
    for pair in pairs:
        if pair not in seen:
            seen.add(pair)
            wanted.append(pair)
    if not wanted:
        return 0

    collection_ids = {collection_id for _, collection_id in wanted}
    existing = set(
        db.query(LinkToCollection.link_id, LinkToCollection.collection_id)
        .filter(LinkToCollection.collection_id.in_(collection_ids))
        .all()
    )

    now = utcnow()
    created = 0
    for link_id, collection_id in wanted:
        if (link_id, collection_id) in existing:
            continue
        db.add(LinkToCollection(link_id=link_id, collection_id=collection_id, created_at=now))
        created += 1

    db.flush()
    return created


def detach_links(db: Session, link_ids: List[str], collection_ids: List[str]) -> int:
    if not link_ids or not collection_ids:
        return 0
    deleted = (
        db.query(LinkToCollection)
        .filter(
            LinkToCollection.link_id.in_(link_ids),
            LinkToCollection.collection_id.in_(collection_ids),
        )
        .delete(synchronize_session=False)
    )
    db.flush()
    return deleted


def set_collections(db: Session, link_id: str, collection_ids: List[str]) -> None:
    """Attach the link to exactly the given collections."""
    current = {
        collection_id
        for (collection_id,) in db.query(LinkToCollection.collection_id)
        .filter(LinkToCollection.link_id == link_id)
        .all()
    }
    wanted = set(collection_ids)
    detach_links(db, [link_id], list(current - wanted))
    attach_links(db, [(link_id, collection_id) for collection_id in collection_ids])


def collection_ids_of_link(db: Session, link_id: str) -> List[str]:
    rows = (
        db.query(LinkToCollection.collection_id)
        .filter(LinkToCollection.link_id == link_id)
        .all()
    )
    return [collection_id for (collection_id,) in rows]


def collections_with_number_links(db: Session, user_id: str, collection_type: str = "collection",
                                  group_id: Optional[str] = None) -> List[Tuple[Collection, int]]:
    """Return the user’s collections with their number of links, optionally of a group."""
    number_links = (
        db.query(func.count(LinkToCollection.id))
        .filter(LinkToCollection.collection_id == Collection.id)
        .correlate(Collection)
        .scalar_subquery()
    )
    query = db.query(Collection, number_links).filter(
        Collection.user_id == user_id, Collection.type == collection_type
    )
    if group_id is not None:
        query = query.filter(Collection.group_id == group_id)
    return sort_by_name(query.all())


def followed_with_number_links(db: Session, user_id: str,
                               group_id: Optional[str] = None) -> List[Tuple[Collection, int]]:
    """Return the public collections followed by the user, with their number of visible links."""
    number_links = (
        db.query(func.count(Link.id))
        .join(LinkToCollection, LinkToCollection.link_id == Link.id)
        .filter(LinkToCollection.collection_id == Collection.id, Link.is_hidden.is_(False))
        .correlate(Collection)
        .scalar_subquery()
    )
    query = (
        db.query(Collection, number_links)
        .join(FollowedCollection, FollowedCollection.collection_id == Collection.id)
        .filter(FollowedCollection.user_id == user_id, Collection.is_public.is_(True))
    )
    if group_id is not None:
        query = query.filter(FollowedCollection.group_id == group_id)
    return sort_by_name(query.all())


def sort_by_name(rows: List[Tuple[Collection, int]]) -> List[Tuple[Collection, int]]:
    return sorted(rows, key=lambda row: row[0].name.casefold())


def exist_for_user(db: Session, user_id: str, collection_ids: List[str]) -> bool:
    """Return True if all the collection ids exist and belong to the user."""
    if not collection_ids:
        return True
    unique_ids = set(collection_ids)
    count = (
        db.query(func.count(Collection.id))
        .filter(Collection.id.in_(unique_ids), Collection.user_id == user_id)
        .scalar()
    )
    return count == len(unique_ids)


def list_for_discovering(db: Session, user_id: Optional[str], limit: int = 25) -> List[Tuple[Collection, int]]:
    """Return random public collections of other users having visible links."""
    number_links = func.count(Link.id).label("number_links")
    query = (
        db.query(Collection, number_links)
        .join(LinkToCollection, LinkToCollection.collection_id == Collection.id)
        .join(Link, Link.id == LinkToCollection.link_id)
        .filter(
            Collection.is_public.is_(True),
            Collection.type == "collection",
            Link.is_hidden.is_(False),
        )
    )
    if user_id:
        query = query.filter(Collection.user_id != user_id)
    return query.group_by(Collection.id).order_by(func.random()).limit(limit).all()


def is_following(db: Session, user_id: str, collection_id: str) -> bool:
    return (
        db.query(FollowedCollection.id)
        .filter(FollowedCollection.user_id == user_id, FollowedCollection.collection_id == collection_id)
        .first()
        is not None
    )


def follow(db: Session, user_id: str, collection_id: str) -> bool:
    """Make the user follow the collection; return False if already following."""
    if is_following(db, user_id, collection_id):
        return False
    db.add(FollowedCollection(user_id=user_id, collection_id=collection_id, created_at=utcnow()))
    db.flush()
    return True


def unfollow(db: Session, user_id: str, collection_id: str) -> bool:
    deleted = (
        db.query(FollowedCollection)
        .filter(FollowedCollection.user_id == user_id, FollowedCollection.collection_id == collection_id)
        .delete(synchronize_session=False)
    )
    db.flush()
    return deleted > 0


def followers_count(db: Session, collection_id: str) -> int:
    return (
        db.query(func.count(FollowedCollection.id))
        .filter(FollowedCollection.collection_id == collection_id)
        .scalar()
    )


def list_feeds_to_sync(db: Session, fetched_before: datetime, limit: Optional[int] = None) -> List[Collection]:
    """Return the followed feeds which weren't fetched since the given date."""
    followed = db.query(FollowedCollection.collection_id).subquery()
    query = (
        db.query(Collection)
        .filter(
            Collection.type == "feed",
            Collection.id.in_(followed),
            (Collection.feed_fetched_at.is_(None)) | (Collection.feed_fetched_at < fetched_before),
        )
        .order_by(Collection.feed_fetched_at.asc())
    )
    if limit:
        query = query.limit(limit)
    return query.all()


def find_feed_by_url(db: Session, feed_url: str) -> Optional[Collection]:
    return (
        db.query(Collection)
        .filter(Collection.type == "feed", Collection.feed_url == feed_url)
        .first()
    )


def links_of_collection(db: Session, collection_id: str, visible_only: bool = False,
                        limit: Optional[int] = None) -> List[Link]:
    query = (
        db.query(Link)
        .join(LinkToCollection, LinkToCollection.link_id == Link.id)
        .filter(LinkToCollection.collection_id == collection_id)
    )
    if visible_only:
        query = query.filter(Link.is_hidden.is_(False))
    query = query.order_by(LinkToCollection.created_at.desc(), Link.created_at.desc())
    if limit:
        query = query.limit(limit)
    return query.all()


def list_links_to_fetch(db: Session, limit: int = 25, max_attempts: int = 3) -> List[Link]:
    """Return links which were never fetched successfully, oldest first."""
    return (
        db.query(Link)
        .filter(
            Link.fetched_at.is_(None) | (Link.fetched_code < 200) | (Link.fetched_code >= 300),
            Link.fetched_count < max_attempts,
        )
        .order_by(Link.created_at.asc())
        .limit(limit)
        .all()
    )


def public_links_of_user(db: Session, user_id: str, limit: int = 30) -> List[Link]:
    """Return the latest links of the user which are shared in a public collection."""
    public_link_ids = (
        db.query(LinkToCollection.link_id)
        .join(Collection, Collection.id == LinkToCollection.collection_id)
        .filter(Collection.is_public.is_(True), Collection.user_id == user_id)
        .subquery()
    )
    return (
        db.query(Link)
        .filter(
            Link.user_id == user_id,
            Link.is_hidden.is_(False),
            Link.id.in_(public_link_ids),
        )
        .order_by(func.coalesce(Link.feed_published_at, Link.created_at).desc())
        .limit(limit)
        .all()
    )


def collection_of_type(db: Session, user_id: str, collection_type: str) -> Optional[Collection]:
    return (
        db.query(Collection)
        .filter(Collection.user_id == user_id, Collection.type == collection_type)
        .first()
    )


def find_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(func.lower(User.email) == email.strip().lower()).first()


def followed_links_since(db: Session, user_id: str, since: datetime, limit: int) -> List[Link]:
    """Return the visible links of the collections followed by the user, published since the date."""
    followed_ids = (
        db.query(FollowedCollection.collection_id)
        .filter(FollowedCollection.user_id == user_id)
        .subquery()
    )
    published_at = func.coalesce(Link.feed_published_at, Link.created_at)
    return (
        db.query(Link)
        .join(LinkToCollection, LinkToCollection.link_id == Link.id)
        .join(Collection, Collection.id == LinkToCollection.collection_id)
        .filter(
            LinkToCollection.collection_id.in_(followed_ids),
            Collection.is_public.is_(True),
            Link.is_hidden.is_(False),
            Link.user_id != user_id,
            and_(published_at >= since),
        )
        .order_by(published_at.desc())
        .limit(limit)
        .all()
    )


# Topics

def list_topics(db: Session) -> List[Topic]:
    return sorted(db.query(Topic).all(), key=lambda topic: topic.label.casefold())


def topic_ids_exist(db: Session, topic_ids: List[str]) -> bool:
    unique_ids = set(topic_ids)
    if not unique_ids:
        return True
    count = db.query(func.count(Topic.id)).filter(Topic.id.in_(unique_ids)).scalar()
    return count == len(unique_ids)


def set_topics(db: Session, collection_id: str, topic_ids: List[str]) -> None:
    """Associate the collection to exactly the given topics."""
    current = {
        topic_id
        for (topic_id,) in db.query(CollectionToTopic.topic_id)
        .filter(CollectionToTopic.collection_id == collection_id)
        .all()
    }
    wanted = set(topic_ids)
    if current - wanted:
        (
            db.query(CollectionToTopic)
            .filter(
                CollectionToTopic.collection_id == collection_id,
                CollectionToTopic.topic_id.in_(current - wanted),
            )
            .delete(synchronize_session=False)
        )
    now = utcnow()
    for topic_id in wanted - current:
        db.add(CollectionToTopic(collection_id=collection_id, topic_id=topic_id, created_at=now))
    db.flush()


def topics_of_collection(db: Session, collection_id: str) -> List[Topic]:
    topics = (
        db.query(Topic)
        .join(CollectionToTopic, CollectionToTopic.topic_id == Topic.id)
        .filter(CollectionToTopic.collection_id == collection_id)
        .all()
    )
    return sorted(topics, key=lambda topic: topic.label.casefold())


def _public_by_topic(db: Session, topic_id: str):
    return (
        db.query(Collection)
        .join(CollectionToTopic, CollectionToTopic.collection_id == Collection.id)
        .filter(
            CollectionToTopic.topic_id == topic_id,
            Collection.is_public.is_(True),
            Collection.type == "collection",
        )
    )


def count_public_by_topic(db: Session, topic_id: str) -> int:
    return _public_by_topic(db, topic_id).count()


def public_with_number_links_by_topic(db: Session, topic_id: str, offset: int,
                                      limit: int) -> List[Tuple[Collection, int]]:
    """Return a page of the public collections of the topic with their number of visible links."""
    number_links = (
        db.query(func.count(Link.id))
        .join(LinkToCollection, LinkToCollection.link_id == Link.id)
        .filter(LinkToCollection.collection_id == Collection.id, Link.is_hidden.is_(False))
        .correlate(Collection)
        .scalar_subquery()
    )
    rows = (
        _public_by_topic(db, topic_id)
        .add_columns(number_links)
        .order_by(func.lower(Collection.name), Collection.id)
        .offset(offset)
        .limit(limit)
        .all()
    )
    return sort_by_name(rows)


def delete_topic(db: Session, topic: Topic) -> None:
    db.query(CollectionToTopic).filter(CollectionToTopic.topic_id == topic.id).delete(
        synchronize_session=False
    )
    db.delete(topic)
    db.flush()


# Groups

def groups_of_user(db: Session, user_id: str) -> List[Group]:
    groups = db.query(Group).filter(Group.user_id == user_id).all()
    return sorted(groups, key=lambda group: group.name.casefold())


def find_group_by_name(db: Session, user_id: str, name: str) -> Optional[Group]:
    return db.query(Group).filter(Group.user_id == user_id, Group.name == name).first()


def followed_collection(db: Session, user_id: str, collection_id: str) -> Optional[FollowedCollection]:
    return (
        db.query(FollowedCollection)
        .filter(FollowedCollection.user_id == user_id, FollowedCollection.collection_id == collection_id)
        .first()
    )


def delete_group(db: Session, group: Group) -> None:
    """Delete the group; its collections are kept, out of any group."""
    db.query(Collection).filter(Collection.group_id == group.id).update(
        {Collection.group_id: None}, synchronize_session=False
    )
    db.query(FollowedCollection).filter(FollowedCollection.group_id == group.id).update(
        {FollowedCollection.group_id: None}, synchronize_session=False
    )
    db.delete(group)
    db.flush()
