import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from colorbook.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Post(Base):
    __tablename__ = "posts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    slug: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)

    title: Mapped[dict] = mapped_column(JSON, default=dict)
    excerpt: Mapped[dict] = mapped_column(JSON, default=dict)
    content: Mapped[dict] = mapped_column(JSON, default=dict)
    meta_title: Mapped[dict] = mapped_column(JSON, default=dict)
    meta_description: Mapped[dict] = mapped_column(JSON, default=dict)

    cover_url: Mapped[str | None] = mapped_column(String(1500), nullable=True)
    author: Mapped[str | None] = mapped_column(String(100), nullable=True)
    # draft | published | archived
    status: Mapped[str] = mapped_column(String(20), default="draft")

    published_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)
