from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Mapping, Optional

from colorbook.config import PollPolicy
from colorbook.errors import ValidationError
from colorbook.jobs.gateway import JobGateway
from colorbook.jobs.models import Job, check_job_type
from colorbook.jobs.poller import Sleep, drive

logger = logging.getLogger(__name__)

Listener = Callable[[Job], None]


class JobRegistry:
    """Zero-or-one live Job per (subject_key, job_type).

    Only ever touched from the event loop thread, so no locking. Every runner
    re-checks ``_is_current`` before it mutates anything, which is what makes
    supersede and cancel safe against in-flight responses.
    """

    def __init__(
        self,
        gateway: JobGateway,
        policies: Optional[Mapping[str, PollPolicy]] = None,
        *,
        grace_seconds: float = 3.0,
        sleep: Sleep = asyncio.sleep,
    ):
        self._gateway = gateway
        self._policies = dict(policies or {})
        self._grace_seconds = grace_seconds
        self._sleep = sleep
        self._jobs: dict[tuple[str, str], Job] = {}
        self._tasks: dict[str, asyncio.Task] = {}
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def policy_for(self, job_type: str) -> PollPolicy:
        return self._policies.get(job_type) or PollPolicy()

    def start(self, subject_key: str, job_type: str, params: Optional[dict[str, Any]] = None) -> Job:
        subject_key = (subject_key or "").strip()
        if not subject_key:
            raise ValidationError("subject_key is required")
        job_type = check_job_type(job_type)

        previous = self._jobs.get((subject_key, job_type))
        if previous is not None and not previous.is_terminal:
            logger.info("superseding job %s for %s/%s", previous.job_id, subject_key, job_type)
            self._cancel_job(previous)

        job = Job(job_type=job_type, subject_key=subject_key, params=dict(params or {}))
        self._jobs[job.key] = job

        task = asyncio.get_running_loop().create_task(
            drive(
                job,
                self._gateway,
                self.policy_for(job_type),
                is_current=self._is_current,
                notify=self._emit,
                sleep=self._sleep,
            ),
            name=f"job:{job_type}:{subject_key}",
        )
        self._tasks[job.job_id] = task
        task.add_done_callback(lambda t, job_id=job.job_id: self._on_task_done(job_id, t))

        logger.info("job %s started for %s/%s", job.job_id, subject_key, job_type)
        self._emit(job)
        return job

    def get(self, subject_key: str, job_type: str) -> Optional[Job]:
        return self._jobs.get((subject_key, check_job_type(job_type)))

    def jobs_for(self, subject_key: str) -> list[Job]:
        return [job for (key, _), job in self._jobs.items() if key == subject_key]

    def active_jobs(self) -> list[Job]:
        return [job for job in self._jobs.values() if not job.is_terminal]

    def is_busy(self, subject_key: str, job_type: str) -> bool:
        job = self.get(subject_key, job_type)
        return job is not None and not job.is_terminal

    def cancel(self, subject_key: str, job_type: str) -> Optional[Job]:
        job = self.get(subject_key, job_type)
        if job is None:
            return None
        if not job.is_terminal:
            logger.info("job %s cancelled for %s/%s", job.job_id, subject_key, job.job_type)
            self._cancel_job(job)
        return job

    async def shutdown(self) -> None:
        for job in self.active_jobs():
            self._cancel_job(job)
        tasks = list(self._tasks.values())
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _is_current(self, job: Job) -> bool:
        return self._jobs.get(job.key) is job and not job.is_terminal

    def _cancel_job(self, job: Job) -> None:
        job.transition("cancelled")
        task = self._tasks.get(job.job_id)
        if task is not None and task is not asyncio.current_task():
            task.cancel()
        self._emit(job)

    def _emit(self, job: Job) -> None:
        for listener in list(self._listeners):
            try:
                listener(job)
            except Exception:
                logger.exception("job listener failed for %s/%s", job.subject_key, job.job_type)
        if job.is_terminal:
            self._release(job)
            asyncio.get_running_loop().call_later(self._grace_seconds, self._evict, job)

    def _release(self, job: Job) -> None:
        try:
            self._gateway.release(job.provider_task_id, job.job_type)
        except Exception:
            logger.exception("releasing task %s of job %s failed", job.provider_task_id, job.job_id)

    def _evict(self, job: Job) -> None:
        if self._jobs.get(job.key) is job:
            del self._jobs[job.key]

    def _on_task_done(self, job_id: str, task: asyncio.Task) -> None:
        self._tasks.pop(job_id, None)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("job runner %s ended with %r", job_id, exc)
