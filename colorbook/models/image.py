import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Table, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from colorbook.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


image_tags = Table(
    "image_tags",
    Base.metadata,
    Column("image_id", String(36), ForeignKey("images.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", String(36), ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


class Image(Base):
    __tablename__ = "images"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # {lang: text}
    name: Mapped[dict] = mapped_column(JSON, default=dict)
    title: Mapped[dict] = mapped_column(JSON, default=dict)
    description: Mapped[dict] = mapped_column(JSON, default=dict)
    prompt: Mapped[dict] = mapped_column(JSON, default=dict)
    body: Mapped[dict] = mapped_column(JSON, default=dict)

    line_art_url: Mapped[str | None] = mapped_column(String(1500), nullable=True)
    colored_url: Mapped[str | None] = mapped_column(String(1500), nullable=True)
    user_uploaded_color_url: Mapped[str | None] = mapped_column(String(1500), nullable=True)

    # generated | uploaded | selected
    type: Mapped[str] = mapped_column(String(30), default="generated")
    ratio: Mapped[str] = mapped_column(String(20), default="1:1")
    provider: Mapped[str | None] = mapped_column(String(50), nullable=True)
    model: Mapped[str | None] = mapped_column(String(100), nullable=True)
    output_format: Mapped[str | None] = mapped_column(String(20), nullable=True)

    is_public: Mapped[bool] = mapped_column(Boolean, default=True)
    is_online: Mapped[bool] = mapped_column(Boolean, default=False)
    hotness: Mapped[int] = mapped_column(Integer, default=0)

    category_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("categories.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    task_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    additional_info: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    tags = relationship("Tag", secondary=image_tags, back_populates="images", lazy="selectin")
    category = relationship("Category", back_populates="images")
