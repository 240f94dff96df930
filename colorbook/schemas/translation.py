from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

TranslationKind = Literal["categories", "tags", "content"]


class TranslateRequest(BaseModel):
    type: TranslationKind
    items: List[Dict[str, Any]] = Field(min_length=1)
    target_languages: List[str] = Field(min_length=1, alias="targetLanguages")
    model: Optional[str] = None

    model_config = {"populate_by_name": True, "protected_namespaces": ()}


class SaveTranslationsRequest(BaseModel):
    type: Literal["categories", "tags"]
    # {item_id: {lang: {field: text}}}
    translations: Dict[str, Dict[str, Dict[str, str]]]
