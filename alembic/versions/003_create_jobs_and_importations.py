"""Create jobs and importations"""
from alembic import op
import sqlalchemy as sa

revision = "003"
down_revision = "002"
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        "jobs",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.Column("updated_at", sa.DateTime, nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("args", sa.Text, nullable=False, server_default="{}"),
        sa.Column("queue", sa.String(50), nullable=False, server_default="default"),
        sa.Column("perform_at", sa.DateTime, nullable=False),
        sa.Column("frequency", sa.Integer, nullable=True),
        sa.Column("locked_at", sa.DateTime, nullable=True),
        sa.Column("number_attempts", sa.Integer, nullable=False, server_default="0"),
        sa.Column("last_error", sa.Text, nullable=True),
        sa.Column("failed_at", sa.DateTime, nullable=True),
    )
    op.create_index("idx_jobs_perform_at", "jobs", ["perform_at"])
    op.create_index("idx_jobs_queue", "jobs", ["queue"])

    op.create_table(
        "importations",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="ongoing"),
        sa.Column("options", sa.Text, nullable=False, server_default="{}"),
        sa.Column("error", sa.Text, nullable=True),
        sa.Column("user_id", sa.String(32), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    )
    op.create_index("idx_importations_user_id", "importations", ["user_id"])

def downgrade():
    op.drop_table("importations")
    op.drop_table("jobs")
