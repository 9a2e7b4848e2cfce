"""Administration command line of flusio.

Usage: ``flusio <group> <command> [options]``, e.g. ``flusio jobs watch``.
"""

import pathlib
import sys
from typing import Optional

import typer
from alembic import command as alembic_command
from alembic.config import Config as AlembicConfig
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from rich.console import Console
from rich.table import Table

from config.database import check_connection, get_engine, session_scope
from config.settings import settings
from observability.logging import setup_logging
from pipelines import url as url_utils
from pipelines.cache import Cache
from pipelines.feed_fetcher import FeedFetcher
from pipelines.http import Http
from server.jobs import QUEUES, job_manager, register_default_handlers
from services import users as users_service
from services.shared import dao, utils
from services.shared.errors import ValidationError
from services.shared.models import Collection, Topic, User

BASE_DIR = pathlib.Path(__file__).resolve().parents[1]

console = Console()
app = typer.Typer(help="flusio CLI - administration of a flusio instance", no_args_is_help=True)
database_app = typer.Typer(help="Inspect the database")
migrations_app = typer.Typer(help="Manage the database migrations")
jobs_app = typer.Typer(help="Manage and run the background jobs")
feeds_app = typer.Typer(help="Manage the feeds")
urls_app = typer.Typer(help="Debug the fetching of URLs")
topics_app = typer.Typer(help="Manage the topics")
users_app = typer.Typer(help="Manage the users")
system_app = typer.Typer(help="Set up the instance")

app.add_typer(database_app, name="database")
app.add_typer(migrations_app, name="migrations")
app.add_typer(jobs_app, name="jobs")
app.add_typer(feeds_app, name="feeds")
app.add_typer(urls_app, name="urls")
app.add_typer(topics_app, name="topics")
app.add_typer(users_app, name="users")
app.add_typer(system_app, name="system")


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug messages")):
    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_file=settings.log_file or None,
        use_json=settings.log_json,
        stream=sys.stderr,
    )
    register_default_handlers()


def fail(message: str) -> None:
    console.print(f"❌ {message}", style="bold red")
    raise typer.Exit(1)


def alembic_config() -> AlembicConfig:
    cfg = AlembicConfig(str(BASE_DIR / "alembic.ini"))
    cfg.set_main_option("script_location", str(BASE_DIR / "alembic"))
    cfg.attributes["database_url"] = str(get_engine().url.render_as_string(hide_password=False))
    cfg.attributes["configure_logger"] = False
    return cfg


def current_revision() -> Optional[str]:
    with get_engine().connect() as connection:
        return MigrationContext.configure(connection).get_current_revision()


# Database

@database_app.command("status")
def database_status():
    """Check the connection to the database"""
    backend = get_engine().url.get_backend_name()
    if not check_connection():
        fail(f"The {backend} database is not reachable")
    console.print(f"✅ The {backend} database is reachable", style="bold green")


# Migrations

@migrations_app.command("list")
def migrations_list():
    """List the migrations and whether they are applied"""
    script = ScriptDirectory.from_config(alembic_config())
    current = current_revision()
    applied = set()
    if current:
        applied = {revision.revision for revision in script.iterate_revisions(current, "base")}

    table = Table(show_header=True, header_style="bold blue")
    table.add_column("Revision", style="bold")
    table.add_column("Description")
    table.add_column("Status", justify="right")
    for revision in reversed(list(script.walk_revisions())):
        status = "[green]applied[/green]" if revision.revision in applied else "[yellow]pending[/yellow]"
        table.add_row(revision.revision, revision.doc or "", status)
    console.print(table)


@migrations_app.command("apply")
def migrations_apply():
    """Apply the pending migrations"""
    before = current_revision()
    alembic_command.upgrade(alembic_config(), "head")
    after = current_revision()
    if before == after:
        console.print("Your database is already up to date.")
    else:
        console.print(f"✅ Database migrated to revision {after}", style="bold green")


@migrations_app.command("rollback")
def migrations_rollback(steps: int = typer.Option(1, "--steps", help="Number of migrations to revert")):
    """Revert the last applied migrations"""
    if not current_revision():
        fail("There is no migration to rollback")
    alembic_command.downgrade(alembic_config(), f"-{steps}")
    console.print(f"✅ Database rolled back to revision {current_revision() or 'base'}", style="bold green")


@migrations_app.command("create")
def migrations_create(name: str = typer.Option(..., "--name", help="Description of the migration")):
    """Create an empty migration file"""
    script = alembic_command.revision(alembic_config(), message=name)
    console.print(f"✅ Migration {script.revision} created: {script.path}", style="bold green")


# Jobs

@jobs_app.command("list")
def jobs_list(queue: str = typer.Option("all", "--queue", help="Queue to list")):
    """List the jobs"""
    jobs = job_manager.list_jobs(queue)
    if not jobs:
        console.print("No job")
        return

    table = Table(show_header=True, header_style="bold blue")
    table.add_column("Id", style="dim")
    table.add_column("Name", style="bold")
    table.add_column("Queue")
    table.add_column("Perform at")
    table.add_column("Frequency", justify="right")
    table.add_column("Status")
    table.add_column("Attempts", justify="right")
    for job in jobs:
        status = job["status"]
        if job["last_error"]:
            status = f"{status} ({job['last_error'][:40]})"
        table.add_row(
            str(job["id"]),
            job["name"],
            job["queue"],
            job["perform_at"],
            f"{job['frequency']}s" if job["frequency"] else "",
            status,
            str(job["number_attempts"]),
        )
    console.print(table)


@jobs_app.command("install")
def jobs_install():
    """Schedule the periodic jobs"""
    job_manager.install()
    console.print("✅ Periodic jobs installed", style="bold green")


@jobs_app.command("run")
def jobs_run(queue: str = typer.Option("all", "--queue", help=f"One of {', '.join(QUEUES)}")):
    """Run the next due job"""
    if queue not in QUEUES:
        fail(f"Invalid queue: {queue}")

    job = job_manager.run_one(queue)
    if not job:
        console.print("No job to run")
    elif job["error"]:
        fail(f"Job {job['id']} ({job['name']}) failed: {job['error']}")
    else:
        console.print(f"✅ Job {job['id']} ({job['name']}) done: {job['result']}", style="bold green")


@jobs_app.command("unlock")
def jobs_unlock(job_id: int = typer.Option(..., "--id", help="Id of the job")):
    """Unlock a job blocked by a crashed worker"""
    if not job_manager.unlock(job_id):
        fail(f"Job {job_id} doesn’t exist")
    console.print(f"✅ Job {job_id} unlocked", style="bold green")


@jobs_app.command("watch")
def jobs_watch(
    queue: str = typer.Option("all", "--queue", help=f"One of {', '.join(QUEUES)}"),
    sleep: float = typer.Option(1.0, "--sleep", help="Seconds to wait when no job is due"),
    stop_after: Optional[int] = typer.Option(None, "--stop-after", help="Stop after N iterations"),
):
    """Run the jobs as they become due"""
    if queue not in QUEUES:
        fail(f"Invalid queue: {queue}")
    performed = job_manager.watch(queue, sleep=sleep, max_iterations=stop_after)
    console.print(f"{performed} jobs performed")


# Feeds

@feeds_app.command("list")
def feeds_list():
    """List the feeds"""
    with session_scope() as db:
        feeds = db.query(Collection).filter(Collection.type == "feed").order_by(Collection.created_at).all()
        table = Table(show_header=True, header_style="bold blue")
        table.add_column("Id", style="dim")
        table.add_column("URL", style="bold")
        table.add_column("Name")
        table.add_column("Fetched at")
        table.add_column("Code", justify="right")
        table.add_column("Followers", justify="right")
        for feed in feeds:
            table.add_row(
                feed.id,
                feed.feed_url,
                feed.name,
                feed.feed_fetched_at.isoformat() if feed.feed_fetched_at else "never",
                str(feed.feed_fetched_code),
                str(dao.followers_count(db, feed.id)),
            )
    console.print(table)


@feeds_app.command("add")
def feeds_add(url: str = typer.Option(..., "--url", help="URL of the feed")):
    """Create and fetch a feed"""
    url_error = url_utils.validate(url)
    if url_error:
        fail(url_error)

    with session_scope() as db:
        feed_url = url_utils.sanitize(url)
        if dao.find_feed_by_url(db, feed_url):
            fail(f"Feed {feed_url} already exists")

        support_user = users_service.support_user(db)
        collection = Collection.init_feed(support_user.id, feed_url)
        db.add(collection)
        db.flush()
        result = FeedFetcher().fetch(db, collection)
        collection_id = collection.id

    console.print(f"✅ Feed {collection_id} added ({result['status']})", style="bold green")


@feeds_app.command("sync")
def feeds_sync(
    collection_id: str = typer.Option(..., "--id", help="Id of the feed collection"),
    nocache: bool = typer.Option(False, "--nocache", help="Ignore the cached response"),
):
    """Synchronize a feed now"""
    with session_scope() as db:
        collection = db.get(Collection, collection_id)
        if not collection or collection.type != "feed":
            fail(f"Feed {collection_id} doesn’t exist")
        result = FeedFetcher(no_cache=nocache).fetch(db, collection)

    if result["status"] == "error":
        fail(f"Feed {collection_id} failed: {result['error'][:200]}")
    console.print(
        f"✅ Feed {collection_id} synchronized ({result['status']}, "
        f"{result['links_created']} links created)",
        style="bold green"
    )


@feeds_app.command("reset-hashes")
def feeds_reset_hashes():
    """Force the next synchronization of every feed"""
    with session_scope() as db:
        count = (
            db.query(Collection)
            .filter(Collection.type == "feed")
            .update({Collection.feed_last_hash: None}, synchronize_session=False)
        )
    console.print(f"✅ {count} feeds reset", style="bold green")


# URLs

@urls_app.command("show")
def urls_show(url: str = typer.Option(..., "--url", help="URL to fetch")):
    """Fetch a URL (without cache) and print the response"""
    url_error = url_utils.validate(url)
    if url_error:
        fail(url_error)
    response = Http(timeout=settings.links_timeout).get(url_utils.sanitize(url))
    console.print(response.to_text(), markup=False, highlight=False, soft_wrap=True)


@urls_app.command("uncache")
def urls_uncache(url: str = typer.Option(..., "--url", help="URL to remove from the cache")):
    """Remove the cached response of a URL"""
    cache = Cache(settings.cache_path)
    if cache.remove(Cache.hash(url_utils.sanitize(url))) or cache.remove(Cache.hash(url)):
        console.print(f"✅ Cache of {url} removed", style="bold green")
    else:
        console.print(f"{url} was not cached")


# Topics

@topics_app.command("list")
def topics_list():
    """List the topics"""
    with session_scope() as db:
        table = Table(show_header=True, header_style="bold blue")
        table.add_column("Id", style="dim")
        table.add_column("Label", style="bold")
        table.add_column("Image URL")
        for topic in dao.list_topics(db):
            table.add_row(topic.id, topic.label, topic.image_url or "")
    console.print(table)


@topics_app.command("create")
def topics_create(
    label: str = typer.Option(..., "--label"),
    image_url: Optional[str] = typer.Option(None, "--image-url"),
):
    """Create a topic"""
    try:
        with session_scope() as db:
            topic = Topic.init(label, image_url)
            topic.check()
            db.add(topic)
            db.flush()
            topic_id = topic.id
    except ValidationError as e:
        fail(" ".join(e.errors.values()))
    console.print(f"✅ Topic {topic_id} created", style="bold green")


@topics_app.command("update")
def topics_update(
    topic_id: str = typer.Option(..., "--id", help="Id of the topic"),
    label: Optional[str] = typer.Option(None, "--label"),
    image_url: Optional[str] = typer.Option(None, "--image-url"),
):
    """Change the label or the image of a topic"""
    try:
        with session_scope() as db:
            topic = db.get(Topic, topic_id)
            if not topic:
                fail(f"Topic {topic_id} doesn’t exist")
            if label is not None:
                topic.label = label.strip()
            if image_url is not None:
                topic.image_url = image_url.strip() or None
            topic.check()
    except ValidationError as e:
        fail(" ".join(e.errors.values()))
    console.print(f"✅ Topic {topic_id} updated", style="bold green")


@topics_app.command("delete")
def topics_delete(topic_id: str = typer.Option(..., "--id", help="Id of the topic")):
    """Delete a topic"""
    with session_scope() as db:
        topic = db.get(Topic, topic_id)
        if not topic:
            fail(f"Topic {topic_id} doesn’t exist")
        dao.delete_topic(db, topic)
    console.print(f"✅ Topic {topic_id} deleted", style="bold green")


# Users

@users_app.command("list")
def users_list():
    """List the users"""
    with session_scope() as db:
        table = Table(show_header=True, header_style="bold blue")
        table.add_column("Id", style="dim")
        table.add_column("Username", style="bold")
        table.add_column("Email")
        table.add_column("Created at")
        table.add_column("Validated", justify="center")
        for user in db.query(User).order_by(User.created_at):
            table.add_row(
                user.id,
                user.username,
                user.email,
                user.created_at.strftime("%Y-%m-%d"),
                "✅" if user.validated_at else "",
            )
    console.print(table)


@users_app.command("create")
def users_create(
    email: str = typer.Option(..., "--email"),
    username: str = typer.Option(..., "--username"),
    password: str = typer.Option(..., "--password", prompt=True, hide_input=True),
):
    """Create a user"""
    try:
        with session_scope() as db:
            user = users_service.create_user(db, email, username, password)
            user_id = user.id
    except ValidationError as e:
        fail(" ".join(e.errors.values()))
    console.print(f"✅ User {user_id} created", style="bold green")


@users_app.command("validate")
def users_validate(user_id: str = typer.Option(..., "--id", help="Id of the user")):
    """Mark the email of a user as validated"""
    with session_scope() as db:
        user = db.get(User, user_id)
        if not user:
            fail(f"User {user_id} doesn’t exist")
        users_service.validate_user(db, user)
    console.print(f"✅ User {user_id} validated", style="bold green")


# System

@system_app.command("secret")
def system_secret():
    """Generate a secret key"""
    console.print(utils.random_hex(128), markup=False, highlight=False, soft_wrap=True)


@system_app.command("setup")
def system_setup():
    """Migrate the database, create the support user and install the jobs"""
    migrations_apply()
    with session_scope() as db:
        support_user = users_service.support_user(db)
        support_user_id = support_user.id
    console.print(f"✅ Support user {support_user_id} ready", style="bold green")
    jobs_install()


if __name__ == "__main__":
    app()
