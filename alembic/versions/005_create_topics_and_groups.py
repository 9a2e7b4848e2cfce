"""Create topics and groups"""
from alembic import op
import sqlalchemy as sa

revision = "005"
down_revision = "004"
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        "topics",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.Column("label", sa.String(255), nullable=False),
        sa.Column("image_url", sa.Text, nullable=True),
    )

    op.create_table(
        "collections_to_topics",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.Column("collection_id", sa.String(32), sa.ForeignKey("collections.id", ondelete="CASCADE"), nullable=False),
        sa.Column("topic_id", sa.String(32), sa.ForeignKey("topics.id", ondelete="CASCADE"), nullable=False),
        sa.UniqueConstraint("collection_id", "topic_id", name="uq_collections_to_topics"),
    )
    op.create_index("idx_collections_to_topics_topic_id", "collections_to_topics", ["topic_id"])

    op.create_table(
        "groups",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("user_id", sa.String(32), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.UniqueConstraint("user_id", "name", name="uq_groups_user_id_name"),
    )

    op.add_column("collections", sa.Column("group_id", sa.String(32), nullable=True))
    op.create_index("idx_collections_group_id", "collections", ["group_id"])
    op.add_column("followed_collections", sa.Column("group_id", sa.String(32), nullable=True))

def downgrade():
    with op.batch_alter_table("followed_collections") as batch_op:
        batch_op.drop_column("group_id")
    op.drop_index("idx_collections_group_id", table_name="collections")
    with op.batch_alter_table("collections") as batch_op:
        batch_op.drop_column("group_id")
    op.drop_table("groups")
    op.drop_table("collections_to_topics")
    op.drop_table("topics")
