from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

import openai
from openai import AsyncOpenAI

from colorbook.config import Settings
from colorbook.errors import MalformedResponse, ProviderRejected, TransportError, ValidationError
from colorbook.services.i18n import unsupported_languages
from colorbook.services.prompts import (
    build_content_prompt,
    build_themes_prompt,
    build_translation_prompt,
    default_content,
)

logger = logging.getLogger(__name__)

TRANSLATION_FIELDS = {
    "categories": ["name", "description"],
    "tags": ["name", "description"],
    "content": ["name", "title", "description", "prompt", "body"],
}

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.MULTILINE)


def extract_json(text: str, opener: str = "[") -> Any:
    """Parse a model reply that should be JSON, tolerating fences and chatter."""
    cleaned = _FENCE.sub("", (text or "").strip()).strip()
    try:
        return json.loads(cleaned)
    except ValueError:
        pass
    closer = "]" if opener == "[" else "}"
    start = cleaned.find(opener)
    end = cleaned.rfind(closer)
    if start == -1 or end <= start:
        raise MalformedResponse("Model reply contains no JSON")
    try:
        return json.loads(cleaned[start : end + 1])
    except ValueError as e:
        raise MalformedResponse(f"Model reply is not valid JSON: {e}") from e


class TextGenerator:
    """LLM calls for themes, page text and translations (OpenAI-compatible API)."""

    def __init__(self, client: AsyncOpenAI, model: str):
        self.client = client
        self.model = model

    @classmethod
    def from_settings(cls, settings: Settings) -> "TextGenerator":
        client = AsyncOpenAI(
            api_key=settings.llm_api_key or "missing",
            base_url=settings.llm_base_url,
        )
        return cls(client, settings.llm_model)

    async def _chat(self, system: str, user: str, *, model: Optional[str], temperature: float, max_tokens: int) -> str:
        try:
            resp = await self.client.chat.completions.create(
                model=model or self.model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except (openai.APIConnectionError, openai.APITimeoutError) as e:
            raise TransportError(f"LLM unreachable: {e}") from e
        except openai.OpenAIError as e:
            raise ProviderRejected(f"LLM rejected the request: {e}") from e

        if not resp.choices:
            raise MalformedResponse("LLM returned no choices")
        return (resp.choices[0].message.content or "").strip()

    async def generate_themes(
        self,
        keyword: str,
        description: str = "",
        count: int = 5,
        model: Optional[str] = None,
    ) -> list[dict[str, str]]:
        keyword = (keyword or "").strip()
        if not keyword:
            raise ValidationError("keyword is required")
        if count < 1 or count > 50:
            raise ValidationError("count must be between 1 and 50")

        text = await self._chat(
            "You are a professional coloring book designer. Always answer with valid JSON.",
            build_themes_prompt(keyword, (description or "").strip(), count),
            model=model,
            temperature=0.8,
            max_tokens=2000,
        )
        raw = extract_json(text, "[")
        if not isinstance(raw, list):
            raise MalformedResponse("Themes reply must be a JSON array")

        themes = []
        for entry in raw:
            if not isinstance(entry, dict):
                continue
            title = str(entry.get("title") or "").strip()
            prompt = str(entry.get("prompt") or "").strip()
            if not title or not prompt:
                continue
            themes.append(
                {
                    "title": title,
                    "description": str(entry.get("description") or "").strip(),
                    "prompt": prompt,
                }
            )
        return themes[:count]

    async def generate_content(
        self,
        keyword: str,
        title: str,
        prompt: str,
        model: Optional[str] = None,
    ) -> dict[str, str]:
        """Page text. Falls back to a template when the LLM call fails."""
        try:
            text = await self._chat(
                "You write practical, inspiring guidance for coloring book pages.",
                build_content_prompt(keyword, title, prompt),
                model=model,
                temperature=0.7,
                max_tokens=1000,
            )
        except (TransportError, ProviderRejected, MalformedResponse) as e:
            logger.warning("content generation for %r fell back to template: %s", title, e)
            return {"text": default_content(keyword, title), "warning": f"Used default text: {e}"}

        if not text:
            return {"text": default_content(keyword, title), "warning": "Used default text: empty reply"}
        return {"text": text}

    async def translate_items(
        self,
        kind: str,
        items: list[dict[str, Any]],
        target_languages: list[str],
        model: Optional[str] = None,
    ) -> dict[str, dict[str, dict[str, str]]]:
        """Returns ``{item_id: {lang: {field: text}}}``."""
        fields = TRANSLATION_FIELDS.get(kind)
        if fields is None:
            raise ValidationError("type must be categories, tags or content")
        if not items:
            raise ValidationError("items must be a non-empty list")
        if not target_languages:
            raise ValidationError("targetLanguages must be a non-empty list")
        bad = unsupported_languages(target_languages)
        if bad:
            raise ValidationError(f"Unsupported languages: {', '.join(bad)}")

        source = []
        for it in items:
            item_id = str(it.get("id") or "").strip()
            if not item_id:
                raise ValidationError("every item needs an id")
            source.append({"id": item_id, **{f: it.get(f) for f in fields if it.get(f)}})

        text = await self._chat(
            "You are a professional translator for a coloring book website. Answer with JSON only.",
            build_translation_prompt(kind, source, target_languages, fields),
            model=model,
            temperature=0.3,
            max_tokens=4000,
        )
        raw = extract_json(text, "{")
        if not isinstance(raw, dict):
            raise MalformedResponse("Translation reply must be a JSON object")

        out: dict[str, dict[str, dict[str, str]]] = {}
        for entry in source:
            per_lang = raw.get(entry["id"])
            if not isinstance(per_lang, dict):
                continue
            for lang in target_languages:
                values = per_lang.get(lang)
                if not isinstance(values, dict):
                    continue
                cleaned = {f: str(values[f]).strip() for f in fields if values.get(f) and str(values[f]).strip()}
                if cleaned:
                    out.setdefault(entry["id"], {})[lang] = cleaned
        return out
