"""In-memory workspace of ContentItem drafts.

Jobs are keyed by draft id (or, for theme generation, by a free-form batch
key), and this store listens to the registry so finished results land on the
right draft without the caller doing anything. Saving copies a draft into the
``images`` table; the draft keeps the row id so later saves update in place.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from colorbook.errors import ColorbookError, ValidationError
from colorbook.jobs.models import Job, check_job_type
from colorbook.schemas.content import ContentItem, ContentItemUpdate
from colorbook.services.ai_generator import TRANSLATION_FIELDS
from colorbook.services.content_store import delete_content_item, persist_content_item, update_content_item
from colorbook.services.i18n import has_text, merge_localized, pick_text

logger = logging.getLogger(__name__)

LOCALIZED_FIELDS = ("name", "title", "description", "prompt", "body")


class DraftStore:
    def __init__(self, source_language: str = "zh"):
        self.source_language = source_language
        self._items: dict[str, ContentItem] = {}

    def __len__(self) -> int:
        return len(self._items)

    def list(self, origin: Optional[str] = None) -> list[ContentItem]:
        items = list(self._items.values())
        if origin is not None:
            items = [it for it in items if it.origin == origin]
        return items

    def get(self, item_id: str) -> Optional[ContentItem]:
        return self._items.get(item_id)

    def require(self, item_id: str) -> ContentItem:
        item = self._items.get(item_id)
        if item is None:
            raise ValidationError(f"Draft {item_id} not found")
        return item

    def create(self, data: Optional[ContentItemUpdate] = None, **fields: Any) -> ContentItem:
        values = data.model_dump(exclude_none=True) if data is not None else {}
        values.update({k: v for k, v in fields.items() if v is not None})
        item = ContentItem(**values)
        self._items[item.id] = item
        return item

    def update(self, item_id: str, patch: ContentItemUpdate) -> ContentItem:
        item = self.require(item_id)
        changes = patch.model_dump(exclude_unset=True)
        for field, value in changes.items():
            if field in LOCALIZED_FIELDS:
                value = merge_localized(getattr(item, field), value)
            setattr(item, field, value)
        item.updated_at = time.time()
        return item

    def remove(self, item_id: str) -> Optional[ContentItem]:
        return self._items.pop(item_id, None)

    def build_params(self, item_id: str, job_type: str, overrides: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """Job params for running ``job_type`` against a draft."""
        item = self.require(item_id)
        job_type = check_job_type(job_type)
        overrides = dict(overrides or {})
        title = pick_text(item.title, self.source_language)
        prompt = pick_text(item.prompt, "en")

        if job_type == "theme_generation":
            raise ValidationError("Theme generation runs on a keyword, not on a draft")

        if job_type == "content_generation":
            if not title:
                raise ValidationError("Draft has no title to write about")
            params = {"keyword": item.keyword or title, "title": title, "prompt": prompt}

        elif job_type == "translation":
            languages = overrides.pop("target_languages", None)
            if not languages:
                raise ValidationError("target_languages is required")
            if not isinstance(languages, list) or not all(isinstance(x, str) for x in languages):
                raise ValidationError("target_languages must be a list of language codes")
            source = {"id": item.id}
            for field in TRANSLATION_FIELDS["content"]:
                text = pick_text(getattr(item, field), self.source_language)
                if text:
                    source[field] = text
            if len(source) == 1:
                raise ValidationError("Draft has no text to translate")
            params = {"kind": "content", "items": [source], "target_languages": list(languages)}

        elif job_type == "text_to_image":
            if not prompt:
                raise ValidationError("Draft has no prompt")
            params = {"prompt": prompt}

        elif job_type == "image_to_image":
            source_url = overrides.pop("source_url", None) or item.user_uploaded_color_url or item.line_art_url
            if not source_url:
                raise ValidationError("Draft has no source image")
            if not prompt:
                raise ValidationError("Draft has no prompt")
            params = {"prompt": prompt, "source_url": source_url}

        else:
            if not item.line_art_url:
                raise ValidationError("Generate the line art before colorizing")
            params = {"source_url": item.line_art_url, "prompt": prompt or title}
            if item.user_uploaded_color_url:
                params["reference_url"] = item.user_uploaded_color_url

        if job_type in ("text_to_image", "image_to_image", "colorization"):
            params.update(
                aspect_ratio=item.aspect_ratio,
                provider=item.provider,
                model=item.model,
                output_format=item.output_format,
            )
        params.update(overrides)
        return {k: v for k, v in params.items() if v is not None}

    def on_job(self, job: Job) -> None:
        """Registry listener: copy completed results onto their draft."""
        if job.state != "completed" or not job.result:
            return

        if job.job_type == "theme_generation":
            self._add_themes(job)
            return

        item = self._items.get(job.subject_key)
        if item is None:
            logger.info("dropping %s result for missing draft %s", job.job_type, job.subject_key)
            return

        if job.job_type == "content_generation":
            lang = job.params.get("language") or self.source_language
            item.body = merge_localized(item.body, {lang: job.result.get("text", "")})
        elif job.job_type == "translation":
            for lang, fields in (job.result.get("translations") or {}).get(item.id, {}).items():
                for field, text in fields.items():
                    if field in LOCALIZED_FIELDS:
                        setattr(item, field, merge_localized(getattr(item, field), {lang: text}))
        elif job.job_type in ("text_to_image", "image_to_image"):
            item.line_art_url = job.result.get("url")
        elif job.job_type == "colorization":
            item.colored_url = job.result.get("url")
        item.updated_at = time.time()

    def _add_themes(self, job: Job) -> None:
        lang = job.params.get("language") or self.source_language
        keyword = str(job.params.get("keyword") or "")
        for theme in job.result.get("items") or []:
            self.create(
                origin=job.subject_key,
                keyword=keyword,
                name={lang: theme["title"]},
                title={lang: theme["title"]},
                description={lang: theme.get("description", "")} if theme.get("description") else {},
                prompt={"en": theme["prompt"]},
                aspect_ratio=job.params.get("aspect_ratio"),
                provider=job.params.get("provider"),
                model=job.params.get("image_model"),
                category_id=job.params.get("category_id"),
                tag_ids=job.params.get("tag_ids"),
            )
        logger.info("theme job %s added %d drafts", job.job_id, len(job.result.get("items") or []))

    def save(self, item_id: str, db: Session) -> ContentItem:
        item = self.require(item_id)
        if not has_text(item.title) and not has_text(item.name):
            raise ValidationError("A draft needs a title in at least one language before saving")
        if item.store_id:
            update_content_item(db, item.store_id, item)
        else:
            item.store_id = persist_content_item(db, item)
        item.updated_at = time.time()
        logger.info("draft %s saved as image %s", item.id, item.store_id)
        return item

    def save_many(self, item_ids: list[str], db: Session) -> dict[str, Any]:
        """Save each draft on its own. One failure never stops the rest."""
        saved: list[dict[str, str]] = []
        errors: list[dict[str, str]] = []
        for item_id in dict.fromkeys(item_ids):
            try:
                item = self.save(item_id, db)
            except (ColorbookError, SQLAlchemyError) as e:
                db.rollback()
                logger.warning("draft %s not saved: %s", item_id, e)
                errors.append({"id": item_id, "error": str(e)})
            else:
                saved.append({"id": item.id, "store_id": item.store_id})
        return {"total_saved": len(saved), "total_failed": len(errors), "saved": saved, "errors": errors}

    def delete(self, item_id: str, db: Session) -> Optional[ContentItem]:
        item = self._items.get(item_id)
        if item is None:
            return None
        # the draft stays until its row is gone so a failed delete can be retried
        if item.store_id:
            delete_content_item(db, item.store_id)
        del self._items[item_id]
        return item
