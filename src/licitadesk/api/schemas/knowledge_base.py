"""
Knowledge base schemas.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from licitadesk.core.schema_base import HTTPSchemaModel


class KBCategoryRead(HTTPSchemaModel):
    id: UUID
    name: str
    description: Optional[str] = None
    icon: Optional[str] = None
    is_premium: bool
    order_index: int


class KBArticleRead(HTTPSchemaModel):
    id: UUID
    category_id: UUID
    title: str
    content: Optional[str] = None
    has_file: bool = False
    is_published: bool
    views: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, article) -> "KBArticleRead":
        read = cls.model_validate(article)
        read.has_file = bool(article.file_url)
        return read


class FileUrlRead(HTTPSchemaModel):
    url: str
    expires_in: int
