"""Fan one job type out over many subjects.

Starts are throttled (one every ``throttle_seconds``) rather than pooled:
once a provider accepts a task it runs on its own, the delay only keeps us
from hammering the creation endpoint.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Callable, Mapping, Optional

from colorbook.errors import ColorbookError, ValidationError
from colorbook.jobs.models import Job, check_job_type
from colorbook.jobs.poller import Sleep
from colorbook.jobs.registry import JobRegistry
from colorbook.jobs.status import describe
from colorbook.services.state_machine import TERMINAL_STATES

logger = logging.getLogger(__name__)

MAX_KEPT_BATCHES = 50

ParamsFactory = Callable[[str], dict[str, Any]]


class Batch:
    def __init__(self, job_type: str, subject_keys: list[str]):
        self.batch_id = uuid.uuid4().hex
        self.job_type = job_type
        self.subject_keys = subject_keys
        self.jobs: dict[str, Job] = {}
        self.per_subject_status: dict[str, dict[str, Any]] = {
            key: {"status": "pending", "progress": 0, "message": "Waiting to start"} for key in subject_keys
        }
        self.cancelled = False
        self._done = asyncio.Event()
        self._running = asyncio.Event()
        self._running.set()

    @property
    def total_count(self) -> int:
        return len(self.subject_keys)

    @property
    def completed_count(self) -> int:
        return sum(1 for s in self.per_subject_status.values() if s["status"] in TERMINAL_STATES)

    @property
    def succeeded_count(self) -> int:
        return sum(1 for s in self.per_subject_status.values() if s["status"] == "completed")

    @property
    def failed_count(self) -> int:
        return sum(1 for s in self.per_subject_status.values() if s["status"] in ("failed", "timed_out"))

    @property
    def done(self) -> bool:
        return self.completed_count == self.total_count

    @property
    def paused(self) -> bool:
        return not self._running.is_set()

    async def wait(self) -> None:
        await self._done.wait()

    async def wait_until_running(self) -> None:
        await self._running.wait()

    def pause(self) -> None:
        self._running.clear()

    def resume(self) -> None:
        self._running.set()

    def attach(self, subject_key: str, job: Job) -> None:
        self.jobs[subject_key] = job
        self.refresh(job)

    def refresh(self, job: Job) -> None:
        if self.jobs.get(job.subject_key) is not job:
            return
        self.per_subject_status[job.subject_key] = {
            "status": job.state,
            "progress": job.progress,
            "message": describe(job),
        }
        self._check_done()

    def mark(self, subject_key: str, status: str, message: str) -> None:
        current = self.per_subject_status[subject_key]
        self.per_subject_status[subject_key] = {"status": status, "progress": current["progress"], "message": message}
        self._check_done()

    def _check_done(self) -> None:
        if self.done and not self._done.is_set():
            logger.info(
                "batch %s (%s) done: %d ok, %d failed of %d",
                self.batch_id, self.job_type, self.succeeded_count, self.failed_count, self.total_count,
            )
            self._done.set()

    def snapshot(self) -> dict[str, Any]:
        return {
            "batch_id": self.batch_id,
            "job_type": self.job_type,
            "completed_count": self.completed_count,
            "total_count": self.total_count,
            "succeeded_count": self.succeeded_count,
            "failed_count": self.failed_count,
            "done": self.done,
            "cancelled": self.cancelled,
            "paused": self.paused,
            "per_subject_status": {k: dict(v) for k, v in self.per_subject_status.items()},
        }


class BatchCoordinator:
    def __init__(self, registry: JobRegistry, *, throttle_seconds: float = 1.0, sleep: Sleep = asyncio.sleep):
        self._registry = registry
        self._throttle = throttle_seconds
        self._sleep = sleep
        self._batches: dict[str, Batch] = {}
        self._owners: dict[str, Batch] = {}
        self._starters: dict[str, asyncio.Task] = {}
        registry.subscribe(self._on_job)

    def get(self, batch_id: str) -> Optional[Batch]:
        return self._batches.get(batch_id)

    def run(
        self,
        subject_keys: list[str],
        job_type: str,
        shared_params: Optional[Mapping[str, Any]] = None,
        per_subject_params: Optional[Mapping[str, Mapping[str, Any]]] = None,
        params_factory: Optional[ParamsFactory] = None,
    ) -> Batch:
        job_type = check_job_type(job_type)
        keys = list(dict.fromkeys(k.strip() for k in subject_keys if k and k.strip()))
        if not keys:
            raise ValidationError("subject_keys must be a non-empty list")

        batch = Batch(job_type, keys)
        self._prune()
        self._batches[batch.batch_id] = batch
        task = asyncio.get_running_loop().create_task(
            self._start_all(batch, dict(shared_params or {}), dict(per_subject_params or {}), params_factory),
            name=f"batch:{job_type}:{batch.batch_id}",
        )
        self._starters[batch.batch_id] = task
        task.add_done_callback(lambda t, batch=batch: self._on_starter_done(batch, t))
        logger.info("batch %s started: %s x %d", batch.batch_id, job_type, len(keys))
        return batch

    def pause(self, batch_id: str) -> Optional[Batch]:
        """Hold back the starts that have not been issued yet. Running jobs keep going."""
        batch = self._batches.get(batch_id)
        if batch is not None and not batch.cancelled:
            batch.pause()
            logger.info("batch %s paused", batch_id)
        return batch

    def resume(self, batch_id: str) -> Optional[Batch]:
        batch = self._batches.get(batch_id)
        if batch is not None and batch.paused:
            batch.resume()
            logger.info("batch %s resumed", batch_id)
        return batch

    def cancel(self, batch_id: str) -> Optional[Batch]:
        batch = self._batches.get(batch_id)
        if batch is None:
            return None
        batch.cancelled = True
        batch.resume()
        for key in batch.subject_keys:
            job = batch.jobs.get(key)
            if job is None:
                if batch.per_subject_status[key]["status"] == "pending":
                    batch.mark(key, "cancelled", "Batch cancelled before start")
            elif not job.is_terminal and self._registry.get(key, batch.job_type) is job:
                self._registry.cancel(key, batch.job_type)
        return batch

    async def _start_all(
        self,
        batch: Batch,
        shared: dict[str, Any],
        per_subject: dict[str, Mapping[str, Any]],
        params_factory: Optional[ParamsFactory],
    ) -> None:
        last = len(batch.subject_keys) - 1
        for i, key in enumerate(batch.subject_keys):
            if batch.paused:
                logger.info("batch %s waiting to resume before %s", batch.batch_id, key)
                await batch.wait_until_running()
            if batch.cancelled:
                return
            try:
                params = dict(shared)
                if params_factory is not None:
                    params.update(params_factory(key))
                params.update(per_subject.get(key) or {})
                job = self._registry.start(key, batch.job_type, params)
            except ColorbookError as exc:
                logger.warning("batch %s: %s not started: %s", batch.batch_id, key, exc)
                batch.mark(key, "failed", str(exc))
            except Exception as exc:
                logger.exception("batch %s: starting %s crashed", batch.batch_id, key)
                batch.mark(key, "failed", f"Could not start: {type(exc).__name__}: {exc}")
            else:
                self._owners[job.job_id] = batch
                batch.attach(key, job)

            if i < last:
                await self._sleep(self._throttle)

    async def shutdown(self) -> None:
        tasks = list(self._starters.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _on_starter_done(self, batch: Batch, task: asyncio.Task) -> None:
        self._starters.pop(batch.batch_id, None)
        if task.cancelled():
            reason = "Batch stopped before start"
        else:
            exc = task.exception()
            if exc is None:
                return
            logger.error("batch %s starter ended with %r", batch.batch_id, exc)
            reason = f"Batch stopped before start: {exc}"
        for key in batch.subject_keys:
            if batch.per_subject_status[key]["status"] == "pending":
                batch.mark(key, "failed", reason)

    def _on_job(self, job: Job) -> None:
        batch = self._owners.get(job.job_id)
        if batch is None:
            return
        batch.refresh(job)
        if job.is_terminal:
            self._owners.pop(job.job_id, None)

    def _prune(self) -> None:
        finished = [b for b in self._batches.values() if b.done]
        for batch in finished[: max(0, len(self._batches) - MAX_KEPT_BATCHES + 1)]:
            self._batches.pop(batch.batch_id, None)
