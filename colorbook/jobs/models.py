from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Literal, Optional

from colorbook.config import JOB_TYPES
from colorbook.errors import ValidationError
from colorbook.services.state_machine import ensure_transition, is_terminal

TaskState = Literal["in_progress", "succeeded", "failed"]


@dataclass
class TaskStatus:
    """A provider task status, already translated out of the provider's vocabulary."""

    state: TaskState
    progress: Optional[int] = None
    result: Optional[dict[str, Any]] = None
    error: Optional[str] = None


@dataclass
class Job:
    job_type: str
    subject_key: str
    params: dict[str, Any] = field(default_factory=dict)
    job_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    provider_task_id: Optional[str] = None
    state: str = "created"
    progress: int = 0
    result: Optional[dict[str, Any]] = None
    error: Optional[str] = None
    attempts: int = 0
    retries: int = 0
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)
    finished_at: Optional[float] = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.subject_key, self.job_type)

    @property
    def is_terminal(self) -> bool:
        return is_terminal(self.state)

    def transition(self, target: str, *, error: Optional[str] = None, result: Optional[dict] = None) -> None:
        ensure_transition(self.state, target)
        self.state = target
        self.updated_at = time.time()
        if target == "completed":
            self.result = result
            self.progress = 100
            self.error = None
        elif target in ("failed", "timed_out"):
            self.error = error
        if self.is_terminal:
            self.finished_at = self.updated_at

    def record_progress(self, value: Optional[int]) -> bool:
        """Keep the highest progress seen. Returns True if it moved."""
        if value is None or value <= self.progress:
            return False
        self.progress = value
        self.updated_at = time.time()
        return True


def check_job_type(job_type: str) -> str:
    jt = (job_type or "").strip().lower().replace("-", "_")
    if jt not in JOB_TYPES:
        raise ValidationError(f"Unknown job type: {job_type}")
    return jt
