"""Job handlers for background processing tasks.

Handlers receive the job id and its parameters and return a dict describing
what they did. An exception marks the job as failed so it is retried later.
"""

import logging
from datetime import timedelta
from typing import Any, Dict

from config.database import session_scope
from config.settings import settings
from observability.logging import log_performance
from pipelines.cache import Cache
from pipelines.feed_fetcher import FeedFetcher
from pipelines.link_fetcher import LinkFetcher
from services.importers import OpmlImporter, PocketImporter
from services.pocket import Pocket, PocketError
from services.shared import dao, utils
from services.shared.errors import ValidationError
from services.shared.models import Collection, Importation, Job, Link, User

logger = logging.getLogger(__name__)

LINKS_SYNC_BATCH = 25


def feed_fetch_job(job_id: str, params: Dict[str, Any]) -> Dict[str, Any]:
    """Synchronize one feed collection.

    Args:
        job_id: Job identifier
        params: Job parameters containing:
            - collection_id: id of the feed collection
            - no_cache: bypass the response cache (optional)
    """
    collection_id = params["collection_id"]
    with session_scope() as db:
        collection = db.get(Collection, collection_id)
        if not collection or collection.type != "feed":
            logger.warning(f"Job {job_id}: feed {collection_id} doesn't exist anymore")
            return {"collection_id": collection_id, "status": "missing"}

        fetcher = FeedFetcher(no_cache=bool(params.get("no_cache", False)))
        result = fetcher.fetch(db, collection)

    return {"collection_id": collection_id, **result}


@log_performance(threshold_ms=5000)
def feeds_sync_job(job_id: str, params: Dict[str, Any]) -> Dict[str, Any]:
    """Enqueue a fetch for the followed feeds not fetched during the last hour."""
    from .jobs import job_manager

    fetched_before = utils.utcnow() - timedelta(seconds=settings.cache_validity)
    with session_scope() as db:
        collection_ids = [
            collection.id
            for collection in dao.list_feeds_to_sync(db, fetched_before, limit=params.get("limit"))
        ]
        pending_ids = {
            job.params.get("collection_id")
            for job in db.query(Job).filter(Job.name == "feed_fetch")
        }

    enqueued = 0
    for collection_id in collection_ids:
        if collection_id in pending_ids:
            continue
        job_manager.enqueue("feed_fetch", {"collection_id": collection_id}, queue="fetchers")
        enqueued += 1

    logger.info(f"Job {job_id}: {enqueued} feeds to synchronize")
    return {"feeds_enqueued": enqueued}


def link_fetch_job(job_id: str, params: Dict[str, Any]) -> Dict[str, Any]:
    link_id = params["link_id"]
    with session_scope() as db:
        link = db.get(Link, link_id)
        if not link:
            return {"link_id": link_id, "status": "missing"}
        result = LinkFetcher(no_cache=bool(params.get("no_cache", False))).fetch(link)

    return {"link_id": link_id, **result}


@log_performance(threshold_ms=30000)
def links_sync_job(job_id: str, params: Dict[str, Any]) -> Dict[str, Any]:
    """Fetch a batch of the links which were never fetched successfully."""
    fetcher = LinkFetcher()
    with session_scope() as db:
        links = dao.list_links_to_fetch(db, limit=params.get("limit", LINKS_SYNC_BATCH))
        for link in links:
            fetcher.fetch(link)
        fetched = len(links)

    logger.info(f"Job {job_id}: {fetched} links fetched")
    return {"links_fetched": fetched}


def pocket_import_job(job_id: str, params: Dict[str, Any]) -> Dict[str, Any]:
    """Import the Pocket items of the user who requested the importation."""
    importation_id = params["importation_id"]
    with session_scope() as db:
        importation = db.get(Importation, importation_id)
        if not importation:
            return {"importation_id": importation_id, "status": "missing"}

        user = db.get(User, importation.user_id)
        if not user.pocket_access_token:
            importation.fail("You didn’t authorize us to access your Pocket data.")
            return {"importation_id": importation_id, "status": "error"}

        try:
            items = Pocket().retrieve_all(user.pocket_access_token)
        except PocketError as e:
            importation.fail(str(e))
            return {"importation_id": importation_id, "status": "error"}

        result = PocketImporter(db, user).import_items(items, importation.params)
        importation.finish()

    return {"importation_id": importation_id, "status": "finished", **result}


def opml_import_job(job_id: str, params: Dict[str, Any]) -> Dict[str, Any]:
    """Follow the feeds of an OPML file and enqueue their first fetch."""
    from .jobs import job_manager

    importation_id = params["importation_id"]
    with session_scope() as db:
        importation = db.get(Importation, importation_id)
        if not importation:
            return {"importation_id": importation_id, "status": "missing"}

        user = db.get(User, importation.user_id)
        try:
            created = OpmlImporter(db, user).import_opml(importation.params.get("opml", ""))
        except ValidationError as e:
            importation.fail(e.errors.get("opml", str(e)))
            return {"importation_id": importation_id, "status": "error"}
        created_ids = [collection.id for collection in created]
        # The document can be large: only keep the outcome
        importation.options = "{}"
        importation.finish()

    for collection_id in created_ids:
        job_manager.enqueue("feed_fetch", {"collection_id": collection_id}, queue="fetchers")

    return {"importation_id": importation_id, "status": "finished", "feeds_created": len(created_ids)}


def cache_clean_job(job_id: str, params: Dict[str, Any]) -> Dict[str, Any]:
    removed = Cache(settings.cache_path).clean(params.get("validity", settings.cache_validity))
    return {"entries_removed": removed}
