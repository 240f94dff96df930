from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from colorbook.config import get_settings
from colorbook.database import get_db
from colorbook.models.post import Post
from colorbook.schemas.post import BulkDeleteRequest, PostIn
from colorbook.services.i18n import coerce_localized, merge_localized, pick_text

router = APIRouter(prefix="/api/posts", tags=["posts"])

LOCALIZED = ("title", "excerpt", "content", "meta_title", "meta_description")

_SLUG_JUNK = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    return _SLUG_JUNK.sub("-", (text or "").lower()).strip("-")[:200]


def post_out(p: Post, lang: Optional[str] = None) -> dict[str, Any]:
    return {
        "id": p.id,
        "slug": p.slug,
        "title": p.title,
        "excerpt": p.excerpt,
        "content": p.content,
        "meta_title": p.meta_title,
        "meta_description": p.meta_description,
        "label": pick_text(p.title, lang),
        "cover_url": p.cover_url,
        "author": p.author,
        "status": p.status,
        "published_at": p.published_at.isoformat() if p.published_at else None,
        "created_at": p.created_at.isoformat() if p.created_at else None,
        "updated_at": p.updated_at.isoformat() if p.updated_at else None,
    }


def _slug_taken(db: Session, slug: str, exclude_id: Optional[str] = None) -> bool:
    stmt = select(Post.id).where(Post.slug == slug)
    if exclude_id:
        stmt = stmt.where(Post.id != exclude_id)
    return db.execute(stmt).first() is not None


def _get(db: Session, post_id: str) -> Post:
    p = db.get(Post, post_id)
    if p is None:
        raise HTTPException(status_code=404, detail="Post not found")
    return p


def _set_status(p: Post, status: str) -> None:
    if status == "published" and p.published_at is None:
        p.published_at = datetime.now(timezone.utc)
    p.status = status


@router.get("")
def list_posts(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: Optional[str] = None,
    lang: Optional[str] = None,
    db: Session = Depends(get_db),
):
    stmt = select(Post)
    if status:
        stmt = stmt.where(Post.status == status)
    total = db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
    rows = (
        db.execute(stmt.order_by(Post.created_at.desc()).offset((page - 1) * page_size).limit(page_size))
        .scalars()
        .all()
    )
    return {
        "items": [post_out(p, lang) for p in rows],
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": (total + page_size - 1) // page_size,
    }


@router.get("/stats")
def post_stats(db: Session = Depends(get_db)):
    rows = db.execute(select(Post.status, func.count(Post.id)).group_by(Post.status)).all()
    by_status = {status: n for status, n in rows}
    return {
        "total": sum(by_status.values()),
        "draft": by_status.get("draft", 0),
        "published": by_status.get("published", 0),
        "archived": by_status.get("archived", 0),
    }


@router.get("/check-slug")
def check_slug(slug: str, exclude_id: Optional[str] = None, db: Session = Depends(get_db)):
    normalized = slugify(slug)
    return {"slug": normalized, "available": bool(normalized) and not _slug_taken(db, normalized, exclude_id)}


@router.get("/slug/{slug}")
def get_post_by_slug(slug: str, lang: Optional[str] = None, db: Session = Depends(get_db)):
    p = db.execute(select(Post).where(Post.slug == slug)).scalar_one_or_none()
    if p is None:
        raise HTTPException(status_code=404, detail="Post not found")
    return post_out(p, lang)


@router.get("/{post_id}")
def get_post(post_id: str, lang: Optional[str] = None, db: Session = Depends(get_db)):
    return post_out(_get(db, post_id), lang)


@router.post("", status_code=201)
def create_post(payload: PostIn, db: Session = Depends(get_db)):
    source = get_settings().source_language
    title = coerce_localized(payload.title, source)
    if not title:
        raise HTTPException(status_code=400, detail="title is required")

    slug = slugify(payload.slug or pick_text(title, "en"))
    if not slug:
        raise HTTPException(status_code=400, detail="slug is required when the title has no latin characters")
    if _slug_taken(db, slug):
        raise HTTPException(status_code=409, detail=f"Slug '{slug}' is already used")

    p = Post(slug=slug, cover_url=payload.cover_url, author=payload.author)
    for field in LOCALIZED:
        setattr(p, field, coerce_localized(getattr(payload, field), source))
    _set_status(p, payload.status or "draft")

    db.add(p)
    db.commit()
    db.refresh(p)
    return post_out(p)


@router.put("/{post_id}")
def update_post(post_id: str, payload: PostIn, db: Session = Depends(get_db)):
    source = get_settings().source_language
    p = _get(db, post_id)
    changes = payload.model_dump(exclude_unset=True)

    if changes.get("slug"):
        slug = slugify(changes.pop("slug"))
        if not slug:
            raise HTTPException(status_code=400, detail="Invalid slug")
        if _slug_taken(db, slug, exclude_id=p.id):
            raise HTTPException(status_code=409, detail=f"Slug '{slug}' is already used")
        p.slug = slug
    changes.pop("slug", None)

    status = changes.pop("status", None)
    for field, value in changes.items():
        if field in LOCALIZED:
            setattr(p, field, merge_localized(getattr(p, field), coerce_localized(value, source)))
        else:
            setattr(p, field, value)
    if status:
        _set_status(p, status)

    p.updated_at = datetime.now(timezone.utc)
    db.commit()
    return post_out(p)


@router.delete("/{post_id}")
def delete_post(post_id: str, db: Session = Depends(get_db)):
    p = _get(db, post_id)
    db.delete(p)
    db.commit()
    return {"deleted": post_id}


@router.post("/bulk-delete")
def bulk_delete_posts(payload: BulkDeleteRequest, db: Session = Depends(get_db)):
    result = db.execute(delete(Post).where(Post.id.in_(payload.ids)))
    db.commit()
    return {"deleted": result.rowcount, "requested": len(payload.ids)}
