from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from colorbook.deps import get_coordinator, get_drafts
from colorbook.jobs.batch import BatchCoordinator
from colorbook.jobs.models import check_job_type
from colorbook.routers.jobs import job_params
from colorbook.schemas.jobs import BatchStartRequest
from colorbook.services.drafts import DraftStore

router = APIRouter(prefix="/api/batches", tags=["batches"])


@router.post("")
async def start_batch(
    payload: BatchStartRequest,
    coordinator: BatchCoordinator = Depends(get_coordinator),
    drafts: DraftStore = Depends(get_drafts),
):
    job_type = check_job_type(payload.job_type)
    shared = dict(payload.params)
    per_subject = payload.per_subject_params

    def params_for(key: str) -> dict:
        # a draft that cannot run this job fails on its own, the rest go ahead
        overrides = {**shared, **(per_subject.get(key) or {})}
        return job_params(drafts, key, job_type, overrides, payload.from_draft)

    batch = coordinator.run(
        payload.subject_keys,
        job_type,
        shared_params=shared,
        per_subject_params=per_subject,
        params_factory=params_for,
    )
    return batch.snapshot()


@router.get("/{batch_id}")
async def batch_status(batch_id: str, coordinator: BatchCoordinator = Depends(get_coordinator)):
    batch = coordinator.get(batch_id)
    if batch is None:
        raise HTTPException(status_code=404, detail="Batch not found")
    return batch.snapshot()


@router.delete("/{batch_id}")
async def cancel_batch(batch_id: str, coordinator: BatchCoordinator = Depends(get_coordinator)):
    batch = coordinator.cancel(batch_id)
    if batch is None:
        raise HTTPException(status_code=404, detail="Batch not found")
    return batch.snapshot()


@router.post("/{batch_id}/pause")
async def pause_batch(batch_id: str, coordinator: BatchCoordinator = Depends(get_coordinator)):
    batch = coordinator.get(batch_id)
    if batch is None:
        raise HTTPException(status_code=404, detail="Batch not found")
    if batch.cancelled or batch.done:
        raise HTTPException(status_code=409, detail="Batch is no longer running")
    return coordinator.pause(batch_id).snapshot()


@router.post("/{batch_id}/resume")
async def resume_batch(batch_id: str, coordinator: BatchCoordinator = Depends(get_coordinator)):
    batch = coordinator.resume(batch_id)
    if batch is None:
        raise HTTPException(status_code=404, detail="Batch not found")
    return batch.snapshot()
