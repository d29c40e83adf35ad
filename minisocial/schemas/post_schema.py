from pydantic import BaseModel, Field, computed_field, field_validator, model_validator
from typing import Optional, List
from datetime import datetime

from minisocial.config import settings
from minisocial.schemas.common import CamelModel
from minisocial.schemas.comment_schema import CommentResponse

class PostCreate(BaseModel):
    """Validated content of a new post; blank text counts as no text"""
    text: Optional[str] = Field(None, max_length=settings.POST_TEXT_MAX_LENGTH)
    image_url: Optional[str] = None

    @field_validator("text", "image_url", mode="before")
    @classmethod
    def blank_as_missing(cls, value):
        if isinstance(value, str):
            return value.strip() or None
        return value

    @model_validator(mode="after")
    def require_text_or_image(self):
        if not self.text and not self.image_url:
            raise ValueError("Post must contain either text or image")
        return self

class PostResponse(CamelModel):
    id: str
    user_id: str
    username: str
    text: Optional[str] = None
    image_url: Optional[str] = None
    likes: List[str] = []
    comments: List[CommentResponse] = []
    created_at: datetime
    updated_at: datetime

    @field_validator("likes", mode="before")
    @classmethod
    def like_user_ids(cls, value):
        # ORM rows carry the id in user_id; the in-memory store keeps plain ids
        return [getattr(like, "user_id", like) for like in value]

    @computed_field(alias="likeCount")
    @property
    def like_count(self) -> int:
        return len(self.likes)

    @computed_field(alias="commentCount")
    @property
    def comment_count(self) -> int:
        return len(self.comments)

class PostEnvelope(CamelModel):
    success: bool = True
    message: Optional[str] = None
    post: PostResponse

class PostListResponse(CamelModel):
    success: bool = True
    count: int
    total: int
    total_pages: int
    current_page: int
    posts: List[PostResponse]

class CommentEnvelope(CamelModel):
    success: bool = True
    message: Optional[str] = None
    comment: CommentResponse
    post: Optional[PostResponse] = None
