from __future__ import annotations

import re
from typing import Any, Optional

from colorbook.jobs.models import TaskStatus
from colorbook.services.providers.base import ImageProvider, ImageRequest
from colorbook.services.state_machine import normalize_progress

_QUOTED = re.compile(r'"(.*?)"')

# errorCode on a record -> reason
RECORD_ERRORS = {
    400: "Content policy violation - the image was rejected",
    451: "Could not download the source image from the given URL",
}

FAILED_STATUSES = {
    "CREATE_TASK_FAILED": "Task creation failed",
    "GENERATE_FAILED": "Generation failed",
}


def _first_url(urls: Any) -> Optional[str]:
    if not isinstance(urls, list) or not urls:
        return None
    raw = str(urls[0] or "").strip()
    m = _QUOTED.search(raw)
    return (m.group(1) if m else raw) or None


class Gpt4oImageProvider(ImageProvider):
    name = "gpt4o"

    async def create_task(self, request: ImageRequest) -> str:
        payload: dict[str, Any] = {
            "prompt": request.prompt,
            "size": request.aspect_ratio or "1:1",
            "nVariants": request.n_variants,
            "isEnhance": False,
            "enableFallback": False,
        }
        if request.files_url:
            payload["filesUrl"] = request.files_url

        data = await self._call("POST", "/gpt4o-image/generate", json=payload)
        return self._task_id(data)

    async def query_task(self, task_id: str) -> TaskStatus:
        data = await self._call("GET", "/gpt4o-image/record-info", params={"taskId": task_id})

        error_code = data.get("errorCode")
        if error_code:
            reason = RECORD_ERRORS.get(error_code) or f"Unknown error code {error_code}"
            return TaskStatus(state="failed", error=data.get("errorMessage") or reason)

        status = str(data.get("status") or "").upper()
        progress = normalize_progress(data.get("progress"))

        if status == "SUCCESS" or data.get("successFlag") == 1:
            urls = (data.get("response") or {}).get("resultUrls")
            url = _first_url(urls)
            result = {"url": url, "urls": urls} if url else None
            return TaskStatus(state="succeeded", progress=100, result=result)

        if status in FAILED_STATUSES or data.get("successFlag") == 2:
            return TaskStatus(
                state="failed",
                progress=progress,
                error=data.get("errorMessage") or FAILED_STATUSES.get(status, "Generation failed"),
            )

        return TaskStatus(state="in_progress", progress=progress)
