from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from colorbook.database import get_db
from colorbook.deps import get_drafts, get_registry
from colorbook.jobs.registry import JobRegistry
from colorbook.jobs.status import project
from colorbook.schemas.content import ContentItemCreate, ContentItemUpdate, DraftBulkSaveRequest
from colorbook.services.drafts import DraftStore

router = APIRouter(prefix="/api/drafts", tags=["drafts"])


def _out(item, registry: JobRegistry) -> dict:
    data = item.model_dump()
    data["jobs"] = {job.job_type: project(job) for job in registry.jobs_for(item.id)}
    return data


def _require(drafts: DraftStore, item_id: str):
    item = drafts.get(item_id)
    if item is None:
        raise HTTPException(status_code=404, detail="Draft not found")
    return item


@router.get("")
async def list_drafts(
    origin: Optional[str] = None,
    drafts: DraftStore = Depends(get_drafts),
    registry: JobRegistry = Depends(get_registry),
):
    items = drafts.list(origin)
    return {"total": len(items), "items": [_out(it, registry) for it in items]}


@router.get("/{item_id}")
async def get_draft(item_id: str, drafts: DraftStore = Depends(get_drafts), registry: JobRegistry = Depends(get_registry)):
    return _out(_require(drafts, item_id), registry)


@router.post("", status_code=201)
async def create_draft(
    payload: ContentItemCreate,
    drafts: DraftStore = Depends(get_drafts),
    registry: JobRegistry = Depends(get_registry),
):
    return _out(drafts.create(payload), registry)


@router.patch("/{item_id}")
async def update_draft(
    item_id: str,
    payload: ContentItemUpdate,
    drafts: DraftStore = Depends(get_drafts),
    registry: JobRegistry = Depends(get_registry),
):
    _require(drafts, item_id)
    return _out(drafts.update(item_id, payload), registry)


@router.post("/save")
async def save_drafts(
    payload: DraftBulkSaveRequest,
    db: Session = Depends(get_db),
    drafts: DraftStore = Depends(get_drafts),
):
    """Save several drafts; each failure is reported per id."""
    return drafts.save_many(payload.ids, db)


@router.post("/{item_id}/save")
async def save_draft(
    item_id: str,
    db: Session = Depends(get_db),
    drafts: DraftStore = Depends(get_drafts),
    registry: JobRegistry = Depends(get_registry),
):
    _require(drafts, item_id)
    return _out(drafts.save(item_id, db), registry)


@router.delete("/{item_id}")
async def delete_draft(
    item_id: str,
    db: Session = Depends(get_db),
    drafts: DraftStore = Depends(get_drafts),
    registry: JobRegistry = Depends(get_registry),
):
    item = _require(drafts, item_id)
    drafts.delete(item_id, db)
    # stop work whose result would have nowhere to land
    for job in registry.jobs_for(item.id):
        registry.cancel(job.subject_key, job.job_type)
    return {"deleted": item_id, "store_id": item.store_id}
