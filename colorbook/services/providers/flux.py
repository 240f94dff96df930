from __future__ import annotations

from typing import Any

from colorbook.jobs.models import TaskStatus
from colorbook.services.providers.base import ImageProvider, ImageRequest

DEFAULT_MODEL = "flux-kontext-pro"


class FluxKontextProvider(ImageProvider):
    """Flux Kontext reports no progress, only a successFlag."""

    name = "flux-kontext"

    async def create_task(self, request: ImageRequest) -> str:
        payload: dict[str, Any] = {
            "prompt": request.prompt,
            "aspectRatio": request.aspect_ratio or "1:1",
            "model": request.model or DEFAULT_MODEL,
            "outputFormat": request.output_format or "png",
            "enableTranslation": True,
        }
        if request.files_url:
            payload["inputImage"] = request.files_url[0]

        data = await self._call("POST", "/flux/kontext/generate", json=payload)
        return self._task_id(data)

    async def query_task(self, task_id: str) -> TaskStatus:
        data = await self._call("GET", "/flux/kontext/record-info", params={"taskId": task_id})

        flag = data.get("successFlag")
        if flag == 1:
            response = data.get("response") or {}
            url = (response.get("resultImageUrl") or "").strip()
            return TaskStatus(state="succeeded", progress=100, result={"url": url} if url else None)
        if flag in (2, 3):
            label = "Task creation failed" if flag == 2 else "Generation failed"
            return TaskStatus(state="failed", error=data.get("errorMessage") or label)
        return TaskStatus(state="in_progress")
