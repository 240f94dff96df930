from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field

PostStatus = Literal["draft", "published", "archived"]


class PostIn(BaseModel):
    slug: Optional[str] = None
    title: Any = None
    excerpt: Any = None
    content: Any = None
    meta_title: Any = None
    meta_description: Any = None
    cover_url: Optional[str] = None
    author: Optional[str] = None
    status: Optional[PostStatus] = None


class BulkDeleteRequest(BaseModel):
    ids: List[str] = Field(min_length=1)
