from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from colorbook.errors import ValidationError
from colorbook.models.category import Category
from colorbook.models.image import Image
from colorbook.models.tag import Tag
from colorbook.schemas.content import ContentItem

logger = logging.getLogger(__name__)


def _resolve_tags(db: Session, tag_ids: list[str]) -> list[Tag]:
    if not tag_ids:
        return []
    tags = db.execute(select(Tag).where(Tag.id.in_(tag_ids))).scalars().all()
    missing = set(tag_ids) - {t.id for t in tags}
    if missing:
        logger.warning("ignoring unknown tag ids: %s", ", ".join(sorted(missing)))
    return list(tags)


def _fill(db: Session, row: Image, item: ContentItem) -> None:
    if item.category_id and db.get(Category, item.category_id) is None:
        raise ValidationError(f"Category {item.category_id} does not exist")

    row.name = dict(item.name or item.title)
    row.title = dict(item.title)
    row.description = dict(item.description)
    row.prompt = dict(item.prompt)
    row.body = dict(item.body)
    row.line_art_url = item.line_art_url
    row.colored_url = item.colored_url
    row.user_uploaded_color_url = item.user_uploaded_color_url
    row.ratio = item.aspect_ratio
    row.provider = item.provider
    row.model = item.model
    row.output_format = item.output_format
    row.category_id = item.category_id
    row.is_public = item.is_public
    row.is_online = item.is_online
    row.hotness = item.hotness
    row.additional_info = {"source": "admin_generation", "keyword": item.keyword, "draft_id": item.id}
    row.tags = _resolve_tags(db, item.tag_ids)


def persist_content_item(db: Session, item: ContentItem) -> str:
    row = Image(type="generated")
    _fill(db, row, item)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row.id


def update_content_item(db: Session, store_id: str, item: ContentItem) -> None:
    row = db.get(Image, store_id)
    if row is None:
        raise ValidationError(f"Image {store_id} no longer exists")
    _fill(db, row, item)
    row.updated_at = datetime.now(timezone.utc)
    db.commit()


def delete_content_item(db: Session, store_id: str) -> bool:
    row = db.get(Image, store_id)
    if row is None:
        return False
    db.delete(row)
    db.commit()
    return True
