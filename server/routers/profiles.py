"""Public Atom feeds of the users' shared links."""

import xml.etree.ElementTree as ET
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import RedirectResponse, Response
from sqlalchemy.orm import Session

from config.database import get_db
from config.settings import settings
from services import users
from services.shared import dao, utils
from services.shared.models import Link, User

router = APIRouter(tags=["profiles"])

ATOM_NS = "http://www.w3.org/2005/Atom"
FEED_LIMIT = 30


def _rfc3339(value) -> str:
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")


def build_atom_feed(user: User, links: List[Link]) -> bytes:
    """Render the links of the user as an Atom document."""
    ET.register_namespace("", ATOM_NS)
    host = settings.url_host
    profile_url = f"https://{host}/p/{user.id}"

    def element(parent, tag, text=None, **attributes):
        node = ET.SubElement(parent, f"{{{ATOM_NS}}}{tag}", attributes)
        if text is not None:
            node.text = text
        return node

    feed = ET.Element(f"{{{ATOM_NS}}}feed")
    element(feed, "title", user.username)
    element(feed, "id", f"tag:{host},{user.created_at:%Y-%m-%d}:users/{user.id}")
    element(feed, "author").append(_name(user.username))
    element(feed, "link", href=profile_url, rel="alternate", type="text/html")
    element(feed, "link", href=f"{profile_url}/feed.atom.xml", rel="self", type="application/atom+xml")
    element(feed, "generator", "flusio", uri="https://github.com/flusio/flusio")

    updated = max((link.published_at() for link in links), default=user.created_at or utils.utcnow())
    element(feed, "updated", _rfc3339(updated))

    for link in links:
        entry = element(feed, "entry")
        element(entry, "title", link.title)
        element(entry, "id", link.tag_uri(host))
        element(entry, "link", href=link.url, rel="alternate", type="text/html")
        element(entry, "link", href=f"https://{host}/links/{link.id}", rel="replies", type="text/html")
        element(entry, "published", _rfc3339(link.published_at()))
        element(entry, "updated", _rfc3339(link.published_at()))
        element(entry, "content", f"<p><a href=\"{link.url}\">{link.url}</a></p>", type="html")

    return ET.tostring(feed, encoding="utf-8", xml_declaration=True)


def _name(username: str) -> ET.Element:
    node = ET.Element(f"{{{ATOM_NS}}}name")
    node.text = username
    return node


@router.get("/p/{user_id}/feed.atom.xml")
def profile_feed(user_id: str, db: Session = Depends(get_db)):
    user = db.get(User, user_id)
    if not user or users.is_support_user(user):
        raise HTTPException(status_code=404, detail="This user doesn’t exist.")

    links = dao.public_links_of_user(db, user.id, limit=FEED_LIMIT)
    return Response(
        content=build_atom_feed(user, links),
        media_type="application/atom+xml",
        headers={"X-Content-Type-Options": "nosniff"},
    )


@router.get("/p/{user_id}/feed")
def profile_feed_alias(user_id: str):
    return RedirectResponse(url=f"/p/{user_id}/feed.atom.xml", status_code=301)
