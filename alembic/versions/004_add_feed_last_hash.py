"""Add feed_last_hash to collections"""
from alembic import op
import sqlalchemy as sa

revision = "004"
down_revision = "003"
branch_labels = None
depends_on = None

def upgrade():
    op.add_column("collections", sa.Column("feed_last_hash", sa.String(64), nullable=True))

def downgrade():
    with op.batch_alter_table("collections") as batch_op:
        batch_op.drop_column("feed_last_hash")
