"""add view records and aggregate analytics tables

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "a1b2c3d4e5f6"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _counter(name: str) -> sa.Column:
    return sa.Column(name, sa.Integer(), nullable=False, server_default="0")


def upgrade() -> None:
    op.create_table(
        "view_records",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("resource_type", sa.String(20), nullable=False),
        sa.Column("resource_id", sa.String(36), nullable=False),
        sa.Column("owner_user_id", sa.String(36), nullable=False),
        sa.Column("viewer_user_id", sa.String(36), nullable=True),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("country_code", sa.String(2), nullable=True),
        sa.Column("country_name", sa.String(100), nullable=True),
        sa.Column("city", sa.String(100), nullable=True),
        sa.Column("region", sa.String(10), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("referrer", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["owner_user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_view_records_resource_created", "view_records", ["resource_type", "resource_id", "created_at"]
    )
    op.create_index("idx_view_records_owner_created", "view_records", ["owner_user_id", "created_at"])
    op.create_index("idx_view_records_country_created", "view_records", ["country_code", "created_at"])
    op.create_index(
        "idx_view_records_dedup_viewer",
        "view_records",
        ["resource_type", "resource_id", "viewer_user_id", "created_at"],
    )
    op.create_index(
        "idx_view_records_dedup_ip",
        "view_records",
        ["resource_type", "resource_id", "ip_address", "created_at"],
    )

    op.create_table(
        "user_analytics",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(36), nullable=False),
        _counter("views_count"),
        _counter("followers_count"),
        _counter("following_count"),
        _counter("posts_count"),
        _counter("videos_count"),
        _counter("comments_count"),
        _counter("likes_received_count"),
        _counter("shares_received_count"),
        sa.Column("last_calculated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id"),
    )

    op.create_table(
        "post_analytics",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("post_id", sa.String(36), nullable=False),
        _counter("views_count"),
        _counter("likes_count"),
        _counter("comments_count"),
        _counter("shares_count"),
        _counter("bookmarks_count"),
        _counter("reports_count"),
        _counter("reactions_count"),
        _counter("total_engagements"),
        sa.Column("engagement_rate", sa.Float(), nullable=False, server_default="0"),
        sa.Column("last_calculated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["post_id"], ["posts.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("post_id"),
    )

    op.create_table(
        "video_analytics",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("video_id", sa.String(36), nullable=False),
        _counter("views_count"),
        _counter("likes_count"),
        _counter("comments_count"),
        _counter("shares_count"),
        sa.Column("total_watch_time", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("average_watch_time", sa.Float(), nullable=False, server_default="0"),
        sa.Column("completion_rate", sa.Float(), nullable=False, server_default="0"),
        sa.Column("last_calculated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["video_id"], ["videos.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("video_id"),
    )

    op.create_table(
        "photo_analytics",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("photo_id", sa.String(36), nullable=False),
        _counter("views_count"),
        _counter("likes_count"),
        _counter("comments_count"),
        _counter("shares_count"),
        sa.Column("last_calculated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["photo_id"], ["photos.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("photo_id"),
    )


def downgrade() -> None:
    op.drop_table("photo_analytics")
    op.drop_table("video_analytics")
    op.drop_table("post_analytics")
    op.drop_table("user_analytics")
    op.drop_table("view_records")
