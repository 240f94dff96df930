from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from colorbook.deps import get_gateway
from colorbook.jobs.gateway import ProviderGateway
from colorbook.jobs.models import check_job_type
from colorbook.schemas.jobs import GenerationRequest, TaskStatusOut

router = APIRouter(prefix="/api/generation", tags=["generation"])


@router.post("/{job_type}")
async def create_task(job_type: str, payload: GenerationRequest, gateway: ProviderGateway = Depends(get_gateway)):
    """
    Create a provider task and return its id straight away.

    Callers poll ``GET /api/generation/{job_type}/{task_id}`` themselves; the
    job endpoints do that polling server-side. A text task created here and
    never polled is cancelled by the local runner on the first submission
    after its retention period.
    """
    task_id = await gateway.create_job(check_job_type(job_type), payload.params)
    return {"task_id": task_id}


@router.get("/{job_type}/{task_id}", response_model=TaskStatusOut)
async def task_status(
    job_type: str,
    task_id: str,
    provider: Optional[str] = None,
    gateway: ProviderGateway = Depends(get_gateway),
):
    status = await gateway.query_job(task_id, check_job_type(job_type), provider)
    return TaskStatusOut(
        task_id=task_id,
        state=status.state,
        progress=status.progress,
        result=status.result,
        error=status.error,
    )
