from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from colorbook.config import get_settings
from colorbook.database import get_db
from colorbook.models.category import Category
from colorbook.models.image import Image
from colorbook.schemas.taxonomy import CategoryIn
from colorbook.services.i18n import coerce_localized, merge_localized, pick_text

router = APIRouter(prefix="/api/categories", tags=["categories"])

LOCALIZED = ("display_name", "description", "seo_title", "seo_desc")


def category_out(c: Category, image_count: int = 0, lang: Optional[str] = None) -> dict[str, Any]:
    return {
        "id": c.id,
        "display_name": c.display_name,
        "description": c.description,
        "seo_title": c.seo_title,
        "seo_desc": c.seo_desc,
        "label": pick_text(c.display_name, lang),
        "image_id": c.image_id,
        "hotness": c.hotness,
        "image_count": image_count,
        "created_at": c.created_at.isoformat() if c.created_at else None,
    }


def _counts(db: Session) -> dict[str, int]:
    rows = db.execute(
        select(Image.category_id, func.count(Image.id)).where(Image.category_id.is_not(None)).group_by(Image.category_id)
    ).all()
    return {cid: n for cid, n in rows}


def _get(db: Session, category_id: str) -> Category:
    c = db.get(Category, category_id)
    if c is None:
        raise HTTPException(status_code=404, detail="Category not found")
    return c


@router.get("")
def list_categories(lang: Optional[str] = None, db: Session = Depends(get_db)):
    counts = _counts(db)
    rows = db.execute(select(Category).order_by(Category.hotness.desc(), Category.created_at)).scalars().all()
    return [category_out(c, counts.get(c.id, 0), lang) for c in rows]


@router.get("/stats")
def category_stats(db: Session = Depends(get_db)):
    counts = _counts(db)
    total = db.execute(select(func.count(Category.id))).scalar_one()
    uncategorized = db.execute(select(func.count(Image.id)).where(Image.category_id.is_(None))).scalar_one()
    return {
        "total_categories": total,
        "categories_with_images": len(counts),
        "categorized_images": sum(counts.values()),
        "uncategorized_images": uncategorized,
    }


@router.get("/{category_id}")
def get_category(category_id: str, lang: Optional[str] = None, db: Session = Depends(get_db)):
    c = _get(db, category_id)
    return category_out(c, _counts(db).get(c.id, 0), lang)


@router.post("", status_code=201)
def create_category(payload: CategoryIn, db: Session = Depends(get_db)):
    source = get_settings().source_language
    display_name = coerce_localized(payload.display_name, source)
    if not display_name:
        raise HTTPException(status_code=400, detail="display_name is required")

    c = Category(image_id=payload.image_id, hotness=payload.hotness or 0)
    for field in LOCALIZED:
        setattr(c, field, coerce_localized(getattr(payload, field), source))
    db.add(c)
    db.commit()
    db.refresh(c)
    return category_out(c)


@router.put("/{category_id}")
def update_category(category_id: str, payload: CategoryIn, db: Session = Depends(get_db)):
    source = get_settings().source_language
    c = _get(db, category_id)
    changes = payload.model_dump(exclude_unset=True)
    for field, value in changes.items():
        if field in LOCALIZED:
            setattr(c, field, merge_localized(getattr(c, field), coerce_localized(value, source)))
        else:
            setattr(c, field, value)
    c.updated_at = datetime.now(timezone.utc)
    db.commit()
    return category_out(c, _counts(db).get(c.id, 0))


@router.delete("/{category_id}")
def delete_category(category_id: str, db: Session = Depends(get_db)):
    c = _get(db, category_id)
    in_use = db.execute(select(func.count(Image.id)).where(Image.category_id == category_id)).scalar_one()
    if in_use:
        raise HTTPException(status_code=409, detail=f"Category is used by {in_use} image(s)")
    db.delete(c)
    db.commit()
    return {"deleted": category_id}
