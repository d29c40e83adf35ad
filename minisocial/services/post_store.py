"""Contract of the post interaction store.

A post owns its content (text and/or image), a like set of user ids and an
ordered comment sequence. Two adapters implement this contract:
``PostService`` on top of SQLAlchemy and ``InMemoryPostStore`` for demo
mode. Callers are expected to have authenticated the user already; the store
trusts the ``(user_id, username)`` pair it is given.

Comments are kept in chronological order: a new comment is appended and the
oldest comment comes first.
"""
import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from minisocial.core.exceptions import ValidationError, format_errors
from minisocial.schemas.comment_schema import CommentCreate, CommentResponse
from minisocial.schemas.post_schema import PostCreate, PostResponse
from minisocial.utils.file_upload import delete_file, is_local_upload

logger = logging.getLogger(__name__)


class PostStore(ABC):

    @abstractmethod
    async def create_post(
        self,
        owner_id: str,
        author_name: str,
        text: Optional[str] = None,
        image_url: Optional[str] = None,
    ) -> PostResponse:
        """Create a post with empty likes and comments"""

    @abstractmethod
    async def get_post(self, post_id: str) -> PostResponse:
        """Get a post by ID, raising NotFound when it does not exist"""

    @abstractmethod
    async def list_posts(self, page: int = 1, page_size: int = 10) -> Tuple[List[PostResponse], int]:
        """Newest posts first, with the total number of posts"""

    @abstractmethod
    async def list_posts_by_owner(
        self, owner_id: str, page: int = 1, page_size: int = 10
    ) -> Tuple[List[PostResponse], int]:
        """Newest posts of one user first, with that user's total"""

    @abstractmethod
    async def toggle_like(self, post_id: str, user_id: str) -> PostResponse:
        """Remove the user from the like set if present, add them otherwise"""

    @abstractmethod
    async def set_like(self, post_id: str, user_id: str, liked: bool) -> PostResponse:
        """Idempotently put the user in (or take them out of) the like set"""

    @abstractmethod
    async def add_comment(self, post_id: str, author_name: str, text: str) -> CommentResponse:
        """Append a comment to the post"""

    @abstractmethod
    async def list_comments(self, post_id: str) -> List[CommentResponse]:
        """Comments of a post, oldest first"""

    @abstractmethod
    async def delete_post(self, post_id: str, requesting_user_id: str) -> None:
        """Delete a post owned by the requesting user, then its stored image"""

    @staticmethod
    def validate_post(text: Optional[str], image_url: Optional[str]) -> PostCreate:
        try:
            return PostCreate(text=text, image_url=image_url)
        except PydanticValidationError as e:
            errors = format_errors(e.errors())
            raise ValidationError(errors[0]["message"], errors=errors) from e

    @staticmethod
    def validate_comment(text: Optional[str]) -> CommentCreate:
        try:
            return CommentCreate(text=text)
        except PydanticValidationError as e:
            errors = format_errors(e.errors())
            raise ValidationError("Invalid comment", errors=errors) from e

    @staticmethod
    def page_offset(page: int, page_size: int) -> int:
        return (max(page, 1) - 1) * page_size

    @staticmethod
    async def release_image(image_url: Optional[str]) -> None:
        """Best-effort removal of a deleted post's stored image"""
        if not is_local_upload(image_url):
            return
        if not await delete_file(image_url):
            logger.error(f"Could not remove image {image_url} of deleted post")
