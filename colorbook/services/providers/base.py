from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from colorbook.errors import MalformedResponse, ProviderRejected, TransportError
from colorbook.jobs.models import TaskStatus

logger = logging.getLogger(__name__)

# Envelope "code" values documented by the provider.
REJECTION_REASONS = {
    401: "Unauthorized - missing or invalid credentials",
    402: "Insufficient credits for this operation",
    404: "Endpoint or resource not found",
    422: "Request parameters failed validation",
    429: "Rate limit exceeded",
    455: "Service unavailable - maintenance in progress",
    500: "Provider server error",
    505: "Feature is currently disabled",
}


@dataclass
class ImageRequest:
    prompt: str
    aspect_ratio: str = "1:1"
    files_url: list[str] = field(default_factory=list)
    model: Optional[str] = None
    output_format: str = "png"
    n_variants: int = 1


class ImageProvider(ABC):
    """One image backend.

    Subclasses only translate between their native request/response shapes
    and ``ImageRequest`` / ``TaskStatus``.
    """

    name: str = ""

    def __init__(self, base_url: str, token: str, client: httpx.AsyncClient):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.client = client

    @abstractmethod
    async def create_task(self, request: ImageRequest) -> str:
        ...

    @abstractmethod
    async def query_task(self, task_id: str) -> TaskStatus:
        ...

    def _headers(self) -> dict[str, str]:
        if not self.token:
            raise ProviderRejected("KIEAI_AUTH_TOKEN is not set")
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    async def _call(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        """Send a request and unwrap the ``{code, msg, data}`` envelope."""
        url = f"{self.base_url}{path}"
        try:
            r = await self.client.request(method, url, headers=self._headers(), **kwargs)
        except httpx.HTTPError as e:
            raise TransportError(f"{self.name}: {type(e).__name__}: {e}") from e

        if r.status_code >= 500:
            raise TransportError(f"{self.name}: HTTP {r.status_code}")

        try:
            body = r.json()
        except ValueError as e:
            raise MalformedResponse(f"{self.name}: response is not JSON (HTTP {r.status_code})") from e
        if not isinstance(body, dict):
            raise MalformedResponse(f"{self.name}: response must be a JSON object")

        code = body.get("code", r.status_code)
        if code != 200:
            reason = REJECTION_REASONS.get(code) or f"Unknown error code {code}"
            msg = (body.get("msg") or "").strip()
            raise ProviderRejected(f"{self.name}: {reason}" + (f" ({msg})" if msg else ""))

        data = body.get("data")
        if not isinstance(data, dict):
            raise MalformedResponse(f"{self.name}: response has no data object")
        return data

    def _task_id(self, data: dict[str, Any]) -> str:
        task_id = str(data.get("taskId") or "").strip()
        if not task_id:
            raise MalformedResponse(f"{self.name}: no taskId in creation response")
        return task_id
