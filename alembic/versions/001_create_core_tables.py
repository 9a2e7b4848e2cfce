"""Create users, sessions, collections and links"""
from alembic import op
import sqlalchemy as sa

revision = "001"
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.Column("validated_at", sa.DateTime, nullable=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("username", sa.String(50), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("csrf", sa.String(64), nullable=False),
        sa.Column("locale", sa.String(10), nullable=False, server_default="en_GB"),
        sa.Column("pocket_request_token", sa.String(255), nullable=True),
        sa.Column("pocket_access_token", sa.String(255), nullable=True),
        sa.Column("pocket_username", sa.String(255), nullable=True),
    )

    op.create_table(
        "sessions",
        sa.Column("token", sa.String(64), primary_key=True),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.Column("expired_at", sa.DateTime, nullable=False),
        sa.Column("name", sa.String(255), nullable=False, server_default=""),
        sa.Column("ip", sa.String(64), nullable=False, server_default=""),
        sa.Column("user_id", sa.String(32), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    )
    op.create_index("idx_sessions_user_id", "sessions", ["user_id"])

    op.create_table(
        "collections",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("type", sa.String(20), nullable=False, server_default="collection"),
        sa.Column("is_public", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("user_id", sa.String(32), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("feed_url", sa.Text, nullable=True),
        sa.Column("feed_site_url", sa.Text, nullable=True),
        sa.Column("feed_fetched_at", sa.DateTime, nullable=True),
        sa.Column("feed_fetched_code", sa.Integer, nullable=False, server_default="0"),
        sa.Column("feed_fetched_error", sa.Text, nullable=True),
    )
    op.create_index("idx_collections_user_id", "collections", ["user_id"])
    op.create_index("idx_collections_feed_url", "collections", ["feed_url"])
    op.create_index("idx_collections_type", "collections", ["type"])

    op.create_table(
        "links",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.Column("title", sa.Text, nullable=False),
        sa.Column("url", sa.Text, nullable=False),
        sa.Column("url_feeds", sa.Text, nullable=False, server_default="[]"),
        sa.Column("is_hidden", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("reading_time", sa.Integer, nullable=False, server_default="0"),
        sa.Column("fetched_at", sa.DateTime, nullable=True),
        sa.Column("fetched_code", sa.Integer, nullable=False, server_default="0"),
        sa.Column("fetched_error", sa.Text, nullable=True),
        sa.Column("fetched_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("user_id", sa.String(32), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("feed_entry_id", sa.Text, nullable=True),
        sa.Column("feed_published_at", sa.DateTime, nullable=True),
        sa.UniqueConstraint("user_id", "url", name="uq_links_user_id_url"),
    )
    op.create_index("idx_links_user_id", "links", ["user_id"])
    op.create_index("idx_links_fetched_at", "links", ["fetched_at"])

    op.create_table(
        "links_to_collections",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.Column("link_id", sa.String(32), sa.ForeignKey("links.id", ondelete="CASCADE"), nullable=False),
        sa.Column("collection_id", sa.String(32), sa.ForeignKey("collections.id", ondelete="CASCADE"), nullable=False),
        sa.UniqueConstraint("link_id", "collection_id", name="uq_links_to_collections"),
    )
    op.create_index("idx_links_to_collections_collection_id", "links_to_collections", ["collection_id"])

def downgrade():
    op.drop_table("links_to_collections")
    op.drop_table("links")
    op.drop_table("collections")
    op.drop_table("sessions")
    op.drop_table("users")
