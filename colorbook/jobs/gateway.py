"""The two calls every job needs: create a provider task, ask how it is doing.

``ProviderGateway`` hides which backend serves which job type. Image jobs go
to an ``ImageProvider``; text jobs (themes, page text, translation) run as
in-process asyncio tasks behind a local task id so they poll the same way.
"""
from __future__ import annotations

import asyncio
import logging
import time
import uuid
from typing import Any, Awaitable, Optional, Protocol

import httpx

from colorbook.errors import MalformedResponse, TransportError, ValidationError
from colorbook.jobs.models import TaskStatus
from colorbook.services.ai_generator import TRANSLATION_FIELDS, TextGenerator
from colorbook.services.i18n import unsupported_languages
from colorbook.services.prompts import build_colorization_prompt, build_coloring_page_prompt
from colorbook.services.providers import DEFAULT_PROVIDER, ImageProvider, ImageRequest
from colorbook.services.storage import ObjectStorage

logger = logging.getLogger(__name__)

IMAGE_JOB_TYPES = {"text_to_image", "image_to_image", "colorization"}
TEXT_JOB_TYPES = {"theme_generation", "content_generation", "translation"}

MIRROR_FOLDERS = {
    "text_to_image": "line-art",
    "image_to_image": "line-art",
    "colorization": "coloring",
}


class JobGateway(Protocol):
    async def create_job(self, job_type: str, params: dict[str, Any]) -> str:
        ...

    async def query_job(self, provider_task_id: str, job_type: str) -> TaskStatus:
        ...

    def release(self, provider_task_id: Optional[str], job_type: str) -> None:
        """Forget a task nobody will poll again."""
        ...


class LocalTaskRunner:
    """Runs a coroutine in the background and reports on it like a remote task.

    A task is forgotten when a status call sees it finish or when it is
    cancelled. Tasks nobody polls are dropped ``retention_seconds`` after
    submission.
    """

    def __init__(self, retention_seconds: float = 3600.0) -> None:
        self.retention_seconds = retention_seconds
        self._tasks: dict[str, asyncio.Task] = {}
        self._submitted: dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._tasks)

    def submit(self, coro: Awaitable[dict[str, Any]]) -> str:
        self.prune()
        task_id = f"local-{uuid.uuid4().hex}"
        task = asyncio.ensure_future(coro)
        task.add_done_callback(lambda t, task_id=task_id: _log_local_failure(task_id, t))
        self._tasks[task_id] = task
        self._submitted[task_id] = time.monotonic()
        return task_id

    def status(self, task_id: str) -> TaskStatus:
        task = self._tasks.get(task_id)
        if task is None:
            raise MalformedResponse(f"Unknown task {task_id}")
        if not task.done():
            return TaskStatus(state="in_progress")

        self._forget(task_id)
        if task.cancelled():
            return TaskStatus(state="failed", error="Task was cancelled")
        exc = task.exception()
        if exc is not None:
            return TaskStatus(state="failed", error=str(exc) or type(exc).__name__)
        return TaskStatus(state="succeeded", progress=100, result=task.result())

    def cancel(self, task_id: str) -> None:
        task = self._forget(task_id)
        if task is not None and not task.done():
            task.cancel()

    def prune(self) -> None:
        cutoff = time.monotonic() - self.retention_seconds
        for task_id in [t for t, at in self._submitted.items() if at <= cutoff]:
            logger.info("dropping unpolled local task %s", task_id)
            self.cancel(task_id)

    def cancel_all(self) -> None:
        for task_id in list(self._tasks):
            self.cancel(task_id)

    def _forget(self, task_id: str) -> Optional[asyncio.Task]:
        self._submitted.pop(task_id, None)
        return self._tasks.pop(task_id, None)


def _log_local_failure(task_id: str, task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug("local task %s failed: %r", task_id, exc)


def _text(params: dict[str, Any], name: str, *, required: bool = False) -> str:
    value = str(params.get(name) or "").strip()
    if required and not value:
        raise ValidationError(f"{name} is required")
    return value


class ProviderGateway:
    def __init__(
        self,
        providers: dict[str, ImageProvider],
        text: TextGenerator,
        http: httpx.AsyncClient,
        *,
        storage: Optional[ObjectStorage] = None,
        server_url: str = "",
        runner: Optional[LocalTaskRunner] = None,
    ):
        self.providers = providers
        self.text = text
        self.http = http
        self.storage = storage
        self.server_url = server_url.rstrip("/")
        self.runner = runner if runner is not None else LocalTaskRunner()
        self._task_providers: dict[str, str] = {}

    def provider(self, name: Optional[str]) -> ImageProvider:
        key = (name or DEFAULT_PROVIDER).strip().lower()
        provider = self.providers.get(key)
        if provider is None:
            raise ValidationError(f"Unknown image provider: {name}")
        return provider

    def validate(self, job_type: str, params: dict[str, Any]) -> None:
        """Reject params that could never produce a task. No network access."""
        if job_type == "theme_generation":
            _text(params, "keyword", required=True)
        elif job_type == "content_generation":
            _text(params, "title", required=True)
        elif job_type == "translation":
            kind = _text(params, "kind") or "content"
            if kind not in TRANSLATION_FIELDS:
                raise ValidationError("kind must be categories, tags or content")
            if not params.get("items") or not params.get("target_languages"):
                raise ValidationError("items and target_languages are required")
            languages = params["target_languages"]
            if not isinstance(languages, list) or not all(isinstance(x, str) for x in languages):
                raise ValidationError("target_languages must be a list of language codes")
            bad = unsupported_languages(params["target_languages"])
            if bad:
                raise ValidationError(f"Unsupported languages: {', '.join(bad)}")
        elif job_type in IMAGE_JOB_TYPES:
            self.provider(params.get("provider"))
            if job_type != "colorization":
                _text(params, "prompt", required=True)
            if job_type != "text_to_image":
                for name in ("source_url", "reference_url"):
                    url = _text(params, name, required=name == "source_url")
                    if url.startswith(("blob:", "data:")):
                        raise ValidationError("Image is still a local preview; wait for the upload to finish")
        else:
            raise ValidationError(f"Unsupported job type: {job_type}")

    async def create_job(self, job_type: str, params: dict[str, Any]) -> str:
        self.validate(job_type, params)
        if job_type in TEXT_JOB_TYPES:
            return self._submit_text_job(job_type, params)

        provider = self.provider(params.get("provider"))
        request = await self._image_request(job_type, params)
        task_id = await provider.create_task(request)
        self._task_providers[task_id] = provider.name
        logger.info("%s task %s created on %s", job_type, task_id, provider.name)
        return task_id

    async def query_job(self, provider_task_id: str, job_type: str, provider: Optional[str] = None) -> TaskStatus:
        if job_type in TEXT_JOB_TYPES:
            return self.runner.status(provider_task_id)

        name = provider or self._task_providers.get(provider_task_id)
        status = await self.provider(name).query_task(provider_task_id)
        if status.state == "succeeded" and status.result and status.result.get("url"):
            status.result = await self._mirror(provider_task_id, job_type, status.result)
        if status.state != "in_progress":
            self._task_providers.pop(provider_task_id, None)
        return status

    def release(self, provider_task_id: Optional[str], job_type: str) -> None:
        if not provider_task_id:
            return
        if job_type in TEXT_JOB_TYPES:
            self.runner.cancel(provider_task_id)
        else:
            # the provider keeps working, we only stop tracking it
            self._task_providers.pop(provider_task_id, None)

    def _submit_text_job(self, job_type: str, params: dict[str, Any]) -> str:
        model = _text(params, "model") or None

        if job_type == "theme_generation":
            keyword = _text(params, "keyword", required=True)
            try:
                count = int(params.get("count") or 5)
            except (TypeError, ValueError) as e:
                raise ValidationError("count must be a number") from e
            return self.runner.submit(self._themes(keyword, _text(params, "description"), count, model))

        if job_type == "content_generation":
            title = _text(params, "title", required=True)
            return self.runner.submit(
                self.text.generate_content(_text(params, "keyword") or title, title, _text(params, "prompt"), model)
            )

        kind = _text(params, "kind") or "content"
        return self.runner.submit(self._translate(kind, params["items"], params["target_languages"], model))

    async def _themes(self, keyword: str, description: str, count: int, model: Optional[str]) -> dict[str, Any]:
        return {"items": await self.text.generate_themes(keyword, description, count, model)}

    async def _translate(self, kind: str, items: list, languages: list, model: Optional[str]) -> dict[str, Any]:
        return {"translations": await self.text.translate_items(kind, items, languages, model)}

    async def _image_request(self, job_type: str, params: dict[str, Any]) -> ImageRequest:
        request = ImageRequest(
            prompt="",
            aspect_ratio=_text(params, "aspect_ratio") or "1:1",
            model=_text(params, "model") or None,
            output_format=_text(params, "output_format") or "png",
        )
        style = _text(params, "style")

        if job_type == "text_to_image":
            prompt = _text(params, "prompt", required=True)
            request.prompt = prompt if params.get("raw_prompt") else build_coloring_page_prompt(prompt, style)
            return request

        source = _text(params, "source_url", required=True)
        request.files_url = [await self.ensure_public_url(source)]

        if job_type == "image_to_image":
            prompt = _text(params, "prompt", required=True)
            request.prompt = prompt if params.get("raw_prompt") else build_coloring_page_prompt(prompt, style)
            return request

        reference = _text(params, "reference_url")
        if reference:
            request.files_url.append(await self.ensure_public_url(reference))
        request.prompt = _text(params, "color_prompt") or build_colorization_prompt(
            _text(params, "prompt"), has_reference=bool(reference), extra=style
        )
        return request

    async def ensure_public_url(self, url: str) -> str:
        """Providers fetch inputs themselves, so local or unreachable images get copied to storage first."""
        if url.startswith(("blob:", "data:")):
            raise ValidationError("Image is still a local preview; wait for the upload to finish")

        if url.startswith(("http://", "https://")):
            try:
                r = await self.http.head(url, timeout=5.0, follow_redirects=True)
                if r.status_code == 200:
                    return url
                logger.info("source %s answered HEAD with %s, copying to storage", url, r.status_code)
            except httpx.HTTPError as e:
                logger.info("source %s not reachable (%s), copying to storage", url, e)
            fetch_from = url
        else:
            if not self.server_url:
                raise ValidationError(f"Cannot resolve relative image path: {url}")
            fetch_from = f"{self.server_url}/{url.lstrip('/')}"

        if self.storage is None:
            raise ValidationError("Source image is not publicly reachable and object storage is not configured")
        return await self.storage.upload_from_url(fetch_from, self.storage.build_key("sketch"), self.http)

    async def _mirror(self, task_id: str, job_type: str, result: dict[str, Any]) -> dict[str, Any]:
        provider_url = result["url"]
        if self.storage is None:
            return {**result, "provider_url": provider_url}
        try:
            url = await self.storage.upload_from_url(
                provider_url, self.storage.build_key(MIRROR_FOLDERS.get(job_type, "images")), self.http
            )
        except TransportError as e:
            logger.warning("keeping provider URL for %s, mirror failed: %s", task_id, e)
            return {**result, "provider_url": provider_url}
        return {**result, "url": url, "provider_url": provider_url}
