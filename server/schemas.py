"""Request bodies of the API."""

from typing import List, Optional

from pydantic import BaseModel


class RegistrationRequest(BaseModel):
    email: str = ""
    username: str = ""
    password: str = ""


class SessionRequest(BaseModel):
    email: str = ""
    password: str = ""
    name: str = ""


class CollectionRequest(BaseModel):
    name: str = ""
    description: str = ""
    is_public: bool = False
    topic_ids: List[str] = []


class CollectionUpdateRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    is_public: Optional[bool] = None
    topic_ids: Optional[List[str]] = None


class LinkRequest(BaseModel):
    url: str = ""
    collection_ids: List[str] = []
    is_hidden: bool = False
    comment: str = ""


class LinkUpdateRequest(BaseModel):
    title: Optional[str] = None
    is_hidden: Optional[bool] = None


class LinkCollectionsRequest(BaseModel):
    collection_ids: List[str] = []


class MessageRequest(BaseModel):
    content: str = ""


class FeedRequest(BaseModel):
    url: str = ""


class PocketImportRequest(BaseModel):
    ignore_tags: bool = True
    import_bookmarks: bool = True
    import_favorites: bool = True


class OpmlImportRequest(BaseModel):
    opml: str = ""


class GroupRequest(BaseModel):
    name: str = ""
