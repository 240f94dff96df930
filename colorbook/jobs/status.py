from __future__ import annotations

from typing import Any, Optional

from colorbook.jobs.models import Job

_LABELS = {
    "theme_generation": "Theme generation",
    "content_generation": "Content generation",
    "translation": "Translation",
    "text_to_image": "Line art generation",
    "image_to_image": "Image redraw",
    "colorization": "Coloring",
}


def describe(job: Job) -> str:
    label = _LABELS.get(job.job_type, job.job_type)
    if job.state == "created":
        return f"{label} queued"
    if job.state == "polling":
        return f"{label} in progress... {job.progress}%"
    if job.state == "completed":
        return f"{label} completed"
    if job.state == "cancelled":
        return f"{label} cancelled"
    if job.state == "timed_out":
        return f"{label} timed out, check again later"
    return f"{label} failed: {job.error or 'unknown error'}"


def project(job: Optional[Job]) -> dict[str, Any]:
    """What the view layer gets to see of a job."""
    if job is None:
        return {"status": "idle", "progress": 0, "message": "", "result": None, "error": None}
    return {
        "job_id": job.job_id,
        "job_type": job.job_type,
        "subject_key": job.subject_key,
        "status": job.state,
        "progress": job.progress,
        "message": describe(job),
        "result": job.result if job.state == "completed" else None,
        "error": job.error if job.state in ("failed", "timed_out") else None,
        "attempts": job.attempts,
    }
