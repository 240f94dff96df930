"""initial catalog: images, categories, tags, posts

Revision ID: 0001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "categories",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("display_name", sa.JSON()),
        sa.Column("description", sa.JSON()),
        sa.Column("seo_title", sa.JSON()),
        sa.Column("seo_desc", sa.JSON()),
        sa.Column("image_id", sa.String(36), nullable=True),
        sa.Column("hotness", sa.Integer(), server_default="0"),
        sa.Column("created_at", sa.DateTime()),
        sa.Column("updated_at", sa.DateTime()),
    )
    op.create_table(
        "tags",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("display_name", sa.JSON()),
        sa.Column("description", sa.JSON()),
        sa.Column("created_at", sa.DateTime()),
    )
    op.create_table(
        "images",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.JSON()),
        sa.Column("title", sa.JSON()),
        sa.Column("description", sa.JSON()),
        sa.Column("prompt", sa.JSON()),
        sa.Column("body", sa.JSON()),
        sa.Column("line_art_url", sa.String(1500), nullable=True),
        sa.Column("colored_url", sa.String(1500), nullable=True),
        sa.Column("user_uploaded_color_url", sa.String(1500), nullable=True),
        sa.Column("type", sa.String(30), server_default="generated"),
        sa.Column("ratio", sa.String(20), server_default="1:1"),
        sa.Column("provider", sa.String(50), nullable=True),
        sa.Column("model", sa.String(100), nullable=True),
        sa.Column("output_format", sa.String(20), nullable=True),
        sa.Column("is_public", sa.Boolean(), server_default=sa.true()),
        sa.Column("is_online", sa.Boolean(), server_default=sa.false()),
        sa.Column("hotness", sa.Integer(), server_default="0"),
        sa.Column("category_id", sa.String(36), sa.ForeignKey("categories.id", ondelete="SET NULL"), nullable=True),
        sa.Column("task_id", sa.String(100), nullable=True),
        sa.Column("additional_info", sa.JSON(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime()),
        sa.Column("updated_at", sa.DateTime()),
    )
    op.create_index("ix_images_category_id", "images", ["category_id"])
    op.create_table(
        "image_tags",
        sa.Column("image_id", sa.String(36), sa.ForeignKey("images.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("tag_id", sa.String(36), sa.ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
    )
    op.create_table(
        "posts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("slug", sa.String(200), nullable=False, unique=True),
        sa.Column("title", sa.JSON()),
        sa.Column("excerpt", sa.JSON()),
        sa.Column("content", sa.JSON()),
        sa.Column("meta_title", sa.JSON()),
        sa.Column("meta_description", sa.JSON()),
        sa.Column("cover_url", sa.String(1500), nullable=True),
        sa.Column("author", sa.String(100), nullable=True),
        sa.Column("status", sa.String(20), server_default="draft"),
        sa.Column("published_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime()),
        sa.Column("updated_at", sa.DateTime()),
    )


def downgrade() -> None:
    op.drop_table("posts")
    op.drop_table("image_tags")
    op.drop_index("ix_images_category_id", table_name="images")
    op.drop_table("images")
    op.drop_table("tags")
    op.drop_table("categories")
