"""Per-job runner: create the provider task, then poll it until terminal.

One coroutine per Job, scheduled as its own asyncio task by the registry.
``is_current`` is re-checked after every await; once it turns False the
runner returns without touching the job again.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from colorbook.config import PollPolicy
from colorbook.errors import ColorbookError, TransportError
from colorbook.jobs.gateway import JobGateway
from colorbook.jobs.models import Job, TaskStatus
from colorbook.services.state_machine import RESULT_KEYS, has_usable_result

logger = logging.getLogger(__name__)

Notify = Callable[[Job], None]
Sleep = Callable[[float], Awaitable[None]]


def _finish(job: Job, target: str, notify: Notify, *, error: str | None = None, result: dict | None = None) -> None:
    job.transition(target, error=error, result=result)
    if target == "completed":
        logger.info("job %s %s/%s completed", job.job_id, job.subject_key, job.job_type)
    else:
        logger.info("job %s %s/%s -> %s: %s", job.job_id, job.subject_key, job.job_type, target, error)
    notify(job)


def apply_status(job: Job, status: TaskStatus, notify: Notify) -> bool:
    """Apply one normalized poll response. Returns True once the job is terminal."""
    if status.state == "succeeded":
        if has_usable_result(job.job_type, status.result):
            _finish(job, "completed", notify, result=status.result)
        else:
            expected = RESULT_KEYS.get(job.job_type, "result")
            _finish(
                job,
                "failed",
                notify,
                error=f"Malformed provider response: task succeeded without a '{expected}'",
            )
        return True

    if status.state == "failed":
        _finish(job, "failed", notify, error=status.error or "Provider reported the task as failed")
        return True

    if job.record_progress(status.progress):
        notify(job)
    return False


async def drive(
    job: Job,
    gateway: JobGateway,
    policy: PollPolicy,
    *,
    is_current: Callable[[Job], bool],
    notify: Notify,
    sleep: Sleep = asyncio.sleep,
) -> None:
    try:
        task_id = await gateway.create_job(job.job_type, job.params)
    except ColorbookError as exc:
        if is_current(job):
            _finish(job, "failed", notify, error=str(exc))
        return
    except Exception as exc:
        logger.exception("create_job crashed for %s/%s", job.subject_key, job.job_type)
        if is_current(job):
            _finish(job, "failed", notify, error=f"Unexpected error creating task: {exc}")
        return

    if not is_current(job):
        # cancelled while the task was being created
        gateway.release(task_id, job.job_type)
        return

    job.provider_task_id = task_id
    job.transition("polling")
    notify(job)

    await sleep(policy.initial_delay)

    while is_current(job):
        job.attempts += 1
        status = None
        try:
            status = await gateway.query_job(task_id, job.job_type)
        except TransportError as exc:
            if not is_current(job):
                return
            job.retries += 1
            if job.retries > policy.retry_budget:
                _finish(job, "failed", notify, error=f"Status query failed: {exc}")
                return
            logger.warning(
                "poll %s for %s/%s failed (%d/%d): %s",
                job.attempts, job.subject_key, job.job_type, job.retries, policy.retry_budget, exc,
            )
        except ColorbookError as exc:
            if is_current(job):
                _finish(job, "failed", notify, error=str(exc))
            return
        except Exception as exc:
            logger.exception("query_job crashed for %s/%s", job.subject_key, job.job_type)
            if is_current(job):
                _finish(job, "failed", notify, error=f"Unexpected error polling task: {exc}")
            return

        if not is_current(job):
            return

        if status is not None:
            job.retries = 0
            logger.debug(
                "poll %s for %s/%s: %s %s", job.attempts, job.subject_key, job.job_type, status.state, status.progress
            )
            if apply_status(job, status, notify):
                return

        if job.attempts >= policy.max_attempts:
            _finish(job, "timed_out", notify, error=f"No result after {job.attempts} status checks")
            return

        await sleep(policy.interval)
