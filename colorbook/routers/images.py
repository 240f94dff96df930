from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import String, cast, func, or_, select
from sqlalchemy.orm import Session

from colorbook.config import get_settings
from colorbook.database import get_db
from colorbook.models.category import Category
from colorbook.models.image import Image
from colorbook.models.tag import Tag
from colorbook.schemas.image import ImageCreate, ImageUpdate
from colorbook.services.i18n import coerce_localized, merge_localized, pick_text

router = APIRouter(prefix="/api/images", tags=["images"])

LOCALIZED = ("name", "title", "description", "prompt", "body")


def tag_out(tag: Tag, lang: Optional[str] = None) -> dict[str, Any]:
    return {
        "id": tag.id,
        "display_name": tag.display_name,
        "label": pick_text(tag.display_name, lang),
        "description": tag.description,
    }


def image_out(img: Image, lang: Optional[str] = None) -> dict[str, Any]:
    return {
        "id": img.id,
        "name": img.name,
        "title": img.title,
        "description": img.description,
        "prompt": img.prompt,
        "body": img.body,
        "label": pick_text(img.title, lang) or pick_text(img.name, lang),
        "line_art_url": img.line_art_url,
        "colored_url": img.colored_url,
        "user_uploaded_color_url": img.user_uploaded_color_url,
        "type": img.type,
        "ratio": img.ratio,
        "provider": img.provider,
        "model": img.model,
        "is_public": img.is_public,
        "is_online": img.is_online,
        "hotness": img.hotness,
        "category_id": img.category_id,
        "tags": [tag_out(t, lang) for t in img.tags],
        "notes": img.notes,
        "created_at": img.created_at.isoformat() if img.created_at else None,
        "updated_at": img.updated_at.isoformat() if img.updated_at else None,
    }


def _page(db: Session, stmt, page: int, page_size: int, lang: Optional[str]) -> dict[str, Any]:
    total = db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
    rows = (
        db.execute(stmt.order_by(Image.created_at.desc()).offset((page - 1) * page_size).limit(page_size))
        .scalars()
        .all()
    )
    return {
        "items": [image_out(r, lang) for r in rows],
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": (total + page_size - 1) // page_size,
    }


def _get_image(db: Session, image_id: str) -> Image:
    img = db.get(Image, image_id)
    if img is None:
        raise HTTPException(status_code=404, detail="Image not found")
    return img


def _apply_tags(db: Session, img: Image, tag_ids: list[str]) -> None:
    tags = db.execute(select(Tag).where(Tag.id.in_(tag_ids))).scalars().all() if tag_ids else []
    if len(tags) != len(set(tag_ids)):
        raise HTTPException(status_code=400, detail="Unknown tag id(s)")
    img.tags = list(tags)


def _check_category(db: Session, category_id: Optional[str]) -> None:
    if category_id and db.get(Category, category_id) is None:
        raise HTTPException(status_code=400, detail="Category does not exist")


@router.get("")
def list_images(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    category_id: Optional[str] = None,
    type: Optional[str] = None,
    is_public: Optional[bool] = None,
    is_online: Optional[bool] = None,
    search: Optional[str] = None,
    lang: Optional[str] = None,
    db: Session = Depends(get_db),
):
    stmt = select(Image)
    if category_id:
        stmt = stmt.where(Image.category_id == category_id)
    if type:
        stmt = stmt.where(Image.type == type)
    if is_public is not None:
        stmt = stmt.where(Image.is_public == is_public)
    if is_online is not None:
        stmt = stmt.where(Image.is_online == is_online)
    if search and search.strip():
        like = f"%{search.strip()}%"
        stmt = stmt.where(
            or_(
                cast(Image.title, String).ilike(like),
                cast(Image.name, String).ilike(like),
                cast(Image.description, String).ilike(like),
            )
        )
    return _page(db, stmt, page, page_size, lang)


@router.get("/save-options")
def save_options(lang: Optional[str] = None, db: Session = Depends(get_db)):
    """Everything the save dialog needs in one call."""
    categories = db.execute(select(Category).order_by(Category.hotness.desc())).scalars().all()
    tags = db.execute(select(Tag).order_by(Tag.created_at)).scalars().all()
    return {
        "categories": [{"id": c.id, "label": pick_text(c.display_name, lang)} for c in categories],
        "tags": [tag_out(t, lang) for t in tags],
    }


@router.get("/by-category/{category_id}")
def images_by_category(
    category_id: str,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    lang: Optional[str] = None,
    db: Session = Depends(get_db),
):
    return _page(db, select(Image).where(Image.category_id == category_id), page, page_size, lang)


@router.get("/by-tag/{tag_id}")
def images_by_tag(
    tag_id: str,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    lang: Optional[str] = None,
    db: Session = Depends(get_db),
):
    return _page(db, select(Image).where(Image.tags.any(Tag.id == tag_id)), page, page_size, lang)


@router.get("/{image_id}")
def get_image(image_id: str, lang: Optional[str] = None, db: Session = Depends(get_db)):
    return image_out(_get_image(db, image_id), lang)


@router.get("/{image_id}/tags")
def image_tags(image_id: str, lang: Optional[str] = None, db: Session = Depends(get_db)):
    return [tag_out(t, lang) for t in _get_image(db, image_id).tags]


@router.post("", status_code=201)
def create_image(payload: ImageCreate, db: Session = Depends(get_db)):
    source = get_settings().source_language
    _check_category(db, payload.category_id)

    img = Image(
        line_art_url=payload.line_art_url,
        colored_url=payload.colored_url,
        user_uploaded_color_url=payload.user_uploaded_color_url,
        type=payload.type,
        ratio=payload.ratio,
        is_public=payload.is_public,
        is_online=payload.is_online,
        hotness=payload.hotness,
        category_id=payload.category_id,
        notes=payload.notes,
        additional_info=payload.additional_info,
    )
    for field in LOCALIZED:
        setattr(img, field, coerce_localized(getattr(payload, field), source))
    if not img.name and not img.title:
        raise HTTPException(status_code=400, detail="name or title is required")
    _apply_tags(db, img, payload.tag_ids)

    db.add(img)
    db.commit()
    db.refresh(img)
    return image_out(img)


@router.put("/{image_id}")
def update_image(image_id: str, payload: ImageUpdate, db: Session = Depends(get_db)):
    source = get_settings().source_language
    img = _get_image(db, image_id)
    changes = payload.model_dump(exclude_unset=True)

    if "category_id" in changes:
        _check_category(db, changes["category_id"])
    for field, value in changes.items():
        if field == "tag_ids":
            _apply_tags(db, img, value or [])
        elif field in LOCALIZED:
            setattr(img, field, merge_localized(getattr(img, field), coerce_localized(value, source)))
        else:
            setattr(img, field, value)

    img.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(img)
    return image_out(img)


@router.delete("/{image_id}")
def delete_image(image_id: str, db: Session = Depends(get_db)):
    img = _get_image(db, image_id)
    db.delete(img)
    db.commit()
    return {"deleted": image_id}
