from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from colorbook.config import get_settings
from colorbook.database import get_db
from colorbook.models.image import image_tags
from colorbook.models.tag import Tag
from colorbook.routers.images import tag_out
from colorbook.schemas.taxonomy import TagIn
from colorbook.services.i18n import coerce_localized, merge_localized

router = APIRouter(prefix="/api/tags", tags=["tags"])


def _usage(db: Session) -> dict[str, int]:
    rows = db.execute(select(image_tags.c.tag_id, func.count()).group_by(image_tags.c.tag_id)).all()
    return {tid: n for tid, n in rows}


def _get(db: Session, tag_id: str) -> Tag:
    t = db.get(Tag, tag_id)
    if t is None:
        raise HTTPException(status_code=404, detail="Tag not found")
    return t


@router.get("")
def list_tags(lang: Optional[str] = None, db: Session = Depends(get_db)):
    usage = _usage(db)
    rows = db.execute(select(Tag).order_by(Tag.created_at)).scalars().all()
    return [{**tag_out(t, lang), "usage_count": usage.get(t.id, 0)} for t in rows]


@router.get("/stats")
def tag_stats(db: Session = Depends(get_db)):
    usage = _usage(db)
    total = db.execute(select(func.count(Tag.id))).scalar_one()
    top = sorted(usage.items(), key=lambda kv: kv[1], reverse=True)[:10]
    return {
        "total_tags": total,
        "used_tags": len(usage),
        "unused_tags": total - len(usage),
        "top": [{"id": tid, "usage_count": n} for tid, n in top],
    }


@router.get("/{tag_id}")
def get_tag(tag_id: str, lang: Optional[str] = None, db: Session = Depends(get_db)):
    t = _get(db, tag_id)
    return {**tag_out(t, lang), "usage_count": _usage(db).get(t.id, 0)}


@router.post("", status_code=201)
def create_tag(payload: TagIn, db: Session = Depends(get_db)):
    source = get_settings().source_language
    display_name = coerce_localized(payload.display_name, source)
    if not display_name:
        raise HTTPException(status_code=400, detail="display_name is required")
    t = Tag(display_name=display_name, description=coerce_localized(payload.description, source))
    db.add(t)
    db.commit()
    db.refresh(t)
    return tag_out(t)


@router.put("/{tag_id}")
def update_tag(tag_id: str, payload: TagIn, db: Session = Depends(get_db)):
    source = get_settings().source_language
    t = _get(db, tag_id)
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(t, field, merge_localized(getattr(t, field), coerce_localized(value, source)))
    db.commit()
    return tag_out(t)


@router.delete("/{tag_id}")
def delete_tag(tag_id: str, db: Session = Depends(get_db)):
    t = _get(db, tag_id)
    db.delete(t)
    db.commit()
    return {"deleted": tag_id}
