from __future__ import annotations

import time
import uuid
from typing import Optional

from pydantic import BaseModel, Field


class ContentItem(BaseModel):
    """One coloring page being worked on, before and after it is saved."""

    id: str = Field(default_factory=lambda: f"content_{uuid.uuid4().hex[:12]}")
    store_id: Optional[str] = None
    origin: Optional[str] = None  # theme batch that created it
    keyword: str = ""

    name: dict[str, str] = Field(default_factory=dict)
    title: dict[str, str] = Field(default_factory=dict)
    description: dict[str, str] = Field(default_factory=dict)
    prompt: dict[str, str] = Field(default_factory=dict)
    body: dict[str, str] = Field(default_factory=dict)

    line_art_url: Optional[str] = None
    colored_url: Optional[str] = None
    user_uploaded_color_url: Optional[str] = None

    aspect_ratio: str = "1:1"
    provider: str = "gpt4o"
    model: Optional[str] = None
    output_format: str = "png"

    category_id: Optional[str] = None
    tag_ids: list[str] = Field(default_factory=list)

    is_public: bool = True
    is_online: bool = False
    hotness: int = 0

    created_at: float = Field(default_factory=time.time)
    updated_at: float = Field(default_factory=time.time)


class ContentItemUpdate(BaseModel):
    keyword: Optional[str] = None
    name: Optional[dict[str, str]] = None
    title: Optional[dict[str, str]] = None
    description: Optional[dict[str, str]] = None
    prompt: Optional[dict[str, str]] = None
    body: Optional[dict[str, str]] = None
    line_art_url: Optional[str] = None
    colored_url: Optional[str] = None
    user_uploaded_color_url: Optional[str] = None
    aspect_ratio: Optional[str] = None
    provider: Optional[str] = None
    model: Optional[str] = None
    output_format: Optional[str] = None
    category_id: Optional[str] = None
    tag_ids: Optional[list[str]] = None
    is_public: Optional[bool] = None
    is_online: Optional[bool] = None
    hotness: Optional[int] = None


class ContentItemCreate(ContentItemUpdate):
    pass


class DraftBulkSaveRequest(BaseModel):
    ids: list[str] = Field(min_length=1)
