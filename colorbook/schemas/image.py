from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ImageCreate(BaseModel):
    name: Any = None
    title: Any = None
    description: Any = None
    prompt: Any = None
    body: Any = None
    line_art_url: Optional[str] = None
    colored_url: Optional[str] = None
    user_uploaded_color_url: Optional[str] = None
    type: str = "uploaded"
    ratio: str = "1:1"
    is_public: bool = True
    is_online: bool = False
    hotness: int = 0
    category_id: Optional[str] = None
    tag_ids: List[str] = Field(default_factory=list)
    notes: Optional[str] = None
    additional_info: Optional[Dict[str, Any]] = None


class ImageUpdate(BaseModel):
    name: Any = None
    title: Any = None
    description: Any = None
    prompt: Any = None
    body: Any = None
    line_art_url: Optional[str] = None
    colored_url: Optional[str] = None
    user_uploaded_color_url: Optional[str] = None
    type: Optional[str] = None
    ratio: Optional[str] = None
    is_public: Optional[bool] = None
    is_online: Optional[bool] = None
    hotness: Optional[int] = None
    category_id: Optional[str] = None
    tag_ids: Optional[List[str]] = None
    notes: Optional[str] = None
