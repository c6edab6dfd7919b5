"""create download_links ledger table"""

from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "download_links",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("object_key", sa.Text(), nullable=False),
        sa.Column("bucket", sa.Text(), nullable=True),
        sa.Column("endpoint", sa.Text(), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("max_downloads", sa.Integer(), nullable=True),
        sa.Column(
            "downloads_served",
            sa.Integer(),
            nullable=False,
            server_default=sa.text("0"),
        ),
        sa.Column("download_filename", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "idx_download_links_expires_at", "download_links", ["expires_at"]
    )
    op.create_index(
        "idx_download_links_created_at", "download_links", ["created_at"]
    )


def downgrade() -> None:
    op.drop_index("idx_download_links_created_at", table_name="download_links")
    op.drop_index("idx_download_links_expires_at", table_name="download_links")
    op.drop_table("download_links")
