from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from colorbook.database import get_db
from colorbook.deps import get_text_generator
from colorbook.models.category import Category
from colorbook.models.tag import Tag
from colorbook.schemas.translation import SaveTranslationsRequest, TranslateRequest
from colorbook.services.ai_generator import TextGenerator
from colorbook.services.i18n import merge_localized, unsupported_languages

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/internationalization", tags=["internationalization"])

# translation field -> column
_COLUMNS = {"name": "display_name", "description": "description"}


@router.post("")
async def translate(payload: TranslateRequest, text: TextGenerator = Depends(get_text_generator)):
    """One-shot translation for the taxonomy screens. Drafts go through the job endpoints instead."""
    translations = await text.translate_items(payload.type, payload.items, payload.target_languages, payload.model)
    return {"type": payload.type, "translations": translations}


@router.post("/save")
def save_translations(payload: SaveTranslationsRequest, db: Session = Depends(get_db)):
    model = Category if payload.type == "categories" else Tag
    updated = 0
    errors: list[dict[str, Any]] = []

    for item_id, per_lang in payload.translations.items():
        row = db.get(model, item_id)
        if row is None:
            errors.append({"id": item_id, "error": "not found"})
            continue
        bad = unsupported_languages(per_lang)
        if bad:
            errors.append({"id": item_id, "error": f"unsupported languages: {', '.join(bad)}"})
            continue

        for lang, fields in per_lang.items():
            for field, value in fields.items():
                column = _COLUMNS.get(field)
                if column is None:
                    continue
                setattr(row, column, merge_localized(getattr(row, column), {lang: value}))
        updated += 1

    db.commit()
    logger.info("saved %s translations: %d updated, %d errors", payload.type, updated, len(errors))
    return {"updated": updated, "errors": errors}
