from pydantic import BaseModel, Field, field_validator
from typing import List
from datetime import datetime

from minisocial.config import settings
from minisocial.schemas.common import CamelModel

class CommentCreate(BaseModel):
    text: str = Field(..., min_length=1, max_length=settings.COMMENT_TEXT_MAX_LENGTH)

    @field_validator("text", mode="before")
    @classmethod
    def strip_text(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value

class CommentResponse(CamelModel):
    id: int
    post_id: str
    username: str
    text: str
    created_at: datetime

class CommentListResponse(CamelModel):
    success: bool = True
    count: int
    comments: List[CommentResponse]