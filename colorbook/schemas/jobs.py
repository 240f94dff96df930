from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class JobStartRequest(BaseModel):
    subject_key: str = Field(min_length=1)
    job_type: str
    params: Dict[str, Any] = Field(default_factory=dict)
    # when the subject is a draft id, build params from the draft first
    from_draft: bool = True


class BatchStartRequest(BaseModel):
    subject_keys: List[str] = Field(min_length=1)
    job_type: str
    params: Dict[str, Any] = Field(default_factory=dict)
    per_subject_params: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    from_draft: bool = True


class GenerationRequest(BaseModel):
    params: Dict[str, Any] = Field(default_factory=dict)


class TaskStatusOut(BaseModel):
    task_id: str
    state: str
    progress: int = 0
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
