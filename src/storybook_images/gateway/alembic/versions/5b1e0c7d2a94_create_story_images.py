"""Create stories, story_chapters and story_images tables.

Revision ID: 5b1e0c7d2a94
Revises:
Create Date: 2025-12-02 09:30:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "5b1e0c7d2a94"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "stories",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=True),
        sa.Column("title", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_stories_user_id"), "stories", ["user_id"], unique=False)

    op.create_table(
        "story_chapters",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("story_id", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["story_id"], ["stories.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_story_chapters_story_id"), "story_chapters", ["story_id"], unique=False)

    op.create_table(
        "story_images",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("story_id", sa.String(), nullable=False),
        sa.Column("chapter_id", sa.String(), nullable=True),
        sa.Column("image_type", sa.String(), nullable=False),
        sa.Column("storage_path", sa.String(), nullable=True),
        sa.Column("storage_bucket", sa.String(), nullable=True),
        sa.Column("provider", sa.String(), nullable=False),
        sa.Column("fallback_used", sa.Boolean(), nullable=False),
        sa.Column("mime_type", sa.String(), nullable=False),
        sa.Column("original_resolution", sa.String(), nullable=True),
        sa.Column("final_resolution", sa.String(), nullable=True),
        sa.Column("resized_from", sa.String(), nullable=True),
        sa.Column("resized_to", sa.String(), nullable=True),
        sa.Column("latency_ms", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("style_id", sa.String(), nullable=True),
        sa.Column("openai_style", sa.String(), nullable=True),
        sa.Column("user_id", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["chapter_id"], ["story_chapters.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_story_images_story_id"), "story_images", ["story_id"], unique=False)
    op.create_index(op.f("ix_story_images_chapter_id"), "story_images", ["chapter_id"], unique=False)
    op.create_index(op.f("ix_story_images_user_id"), "story_images", ["user_id"], unique=False)
    op.create_index(
        "uq_story_images_story_level",
        "story_images",
        ["story_id", "image_type"],
        unique=True,
        sqlite_where=sa.text("chapter_id IS NULL"),
        postgresql_where=sa.text("chapter_id IS NULL"),
    )
    op.create_index(
        "uq_story_images_chapter_level",
        "story_images",
        ["story_id", "chapter_id", "image_type"],
        unique=True,
        sqlite_where=sa.text("chapter_id IS NOT NULL"),
        postgresql_where=sa.text("chapter_id IS NOT NULL"),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("uq_story_images_chapter_level", table_name="story_images")
    op.drop_index("uq_story_images_story_level", table_name="story_images")
    op.drop_index(op.f("ix_story_images_user_id"), table_name="story_images")
    op.drop_index(op.f("ix_story_images_chapter_id"), table_name="story_images")
    op.drop_index(op.f("ix_story_images_story_id"), table_name="story_images")
    op.drop_table("story_images")

    op.drop_index(op.f("ix_story_chapters_story_id"), table_name="story_chapters")
    op.drop_table("story_chapters")

    op.drop_index(op.f("ix_stories_user_id"), table_name="stories")
    op.drop_table("stories")
