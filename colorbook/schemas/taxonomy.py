from typing import Any, Optional

from pydantic import BaseModel


class CategoryIn(BaseModel):
    display_name: Any = None
    description: Any = None
    seo_title: Any = None
    seo_desc: Any = None
    image_id: Optional[str] = None
    hotness: Optional[int] = None


class TagIn(BaseModel):
    display_name: Any = None
    description: Any = None
