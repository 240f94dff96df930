from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from colorbook.deps import get_drafts, get_gateway, get_registry
from colorbook.jobs.gateway import ProviderGateway
from colorbook.jobs.models import check_job_type
from colorbook.jobs.registry import JobRegistry
from colorbook.jobs.status import project
from colorbook.schemas.jobs import JobStartRequest
from colorbook.services.drafts import DraftStore

router = APIRouter(prefix="/api/jobs", tags=["jobs"])


def job_params(
    drafts: DraftStore,
    subject_key: str,
    job_type: str,
    params: dict[str, Any],
    from_draft: bool = True,
) -> dict[str, Any]:
    """Params for a job, built from the draft when the subject is one."""
    if from_draft and drafts.get(subject_key) is not None:
        return drafts.build_params(subject_key, job_type, params)
    return dict(params)


@router.post("")
async def start_job(
    payload: JobStartRequest,
    registry: JobRegistry = Depends(get_registry),
    drafts: DraftStore = Depends(get_drafts),
    gateway: ProviderGateway = Depends(get_gateway),
):
    job_type = check_job_type(payload.job_type)
    params = job_params(drafts, payload.subject_key, job_type, payload.params, payload.from_draft)
    gateway.validate(job_type, params)

    job = registry.start(payload.subject_key, job_type, params)
    return project(job)


@router.get("/{subject_key}")
async def jobs_for_subject(subject_key: str, registry: JobRegistry = Depends(get_registry)):
    return {"subject_key": subject_key, "jobs": [project(j) for j in registry.jobs_for(subject_key)]}


@router.get("/{subject_key}/{job_type}")
async def job_status(subject_key: str, job_type: str, registry: JobRegistry = Depends(get_registry)):
    return project(registry.get(subject_key, job_type))


@router.delete("/{subject_key}/{job_type}")
async def cancel_job(subject_key: str, job_type: str, registry: JobRegistry = Depends(get_registry)):
    job = registry.cancel(subject_key, job_type)
    if job is None:
        raise HTTPException(status_code=404, detail="No job for this subject")
    return project(job)
