"""Multi-language text helpers.

Every human-readable field is stored as ``{language_code: text}``. A missing
code means "not translated yet". ``pick_text`` is the one place that decides
which translation to show.
"""
from __future__ import annotations

import json
from typing import Any, Iterable, Mapping, Optional

SUPPORTED_LANGUAGES = {
    "zh": "Chinese",
    "en": "English",
    "ja": "Japanese",
    "ko": "Korean",
    "fr": "French",
    "de": "German",
    "es": "Spanish",
    "it": "Italian",
    "pt": "Portuguese",
    "ru": "Russian",
    "ar": "Arabic",
}

FALLBACK_CHAIN = ("en", "zh")


def coerce_localized(value: Any, source_language: str = "zh") -> dict[str, str]:
    """Turn whatever the caller sent into a ``{lang: text}`` dict.

    Accepts a mapping, a JSON-encoded mapping, a plain string (assigned to
    ``source_language``) or ``None``. Empty entries are dropped.
    """
    if value is None:
        return {}
    if isinstance(value, Mapping):
        return {str(k): str(v) for k, v in value.items() if v is not None and str(v).strip()}
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return {}
        if text.startswith("{"):
            try:
                parsed = json.loads(text)
            except ValueError:
                parsed = None
            if isinstance(parsed, dict):
                return coerce_localized(parsed, source_language)
        return {source_language: text}
    return {source_language: str(value)}


def pick_text(value: Optional[Mapping[str, str]], preferred: Optional[str] = None) -> str:
    """preferred -> en -> zh -> first non-empty entry -> ''"""
    if not value:
        return ""
    order: list[str] = []
    if preferred:
        order.append(preferred)
    order.extend(x for x in FALLBACK_CHAIN if x not in order)

    for lang in order:
        text = value.get(lang)
        if text and text.strip():
            return text
    for text in value.values():
        if text and text.strip():
            return text
    return ""


def has_text(value: Optional[Mapping[str, str]]) -> bool:
    return bool(pick_text(value))


def merge_localized(base: Optional[Mapping[str, str]], updates: Optional[Mapping[str, str]]) -> dict[str, str]:
    """New translations win; empty updates never erase existing text."""
    merged = dict(base or {})
    for lang, text in (updates or {}).items():
        if text and str(text).strip():
            merged[lang] = str(text)
    return merged


def unsupported_languages(codes: Iterable[str]) -> list[str]:
    return [c for c in codes if c not in SUPPORTED_LANGUAGES]
