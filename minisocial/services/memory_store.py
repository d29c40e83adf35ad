"""Volatile, process-lifetime stores used when no database is reachable.

Everything lives in plain dicts and is lost on restart. Mutations run under a
single ``asyncio.Lock``; every value handed out is a fresh pydantic copy, so
callers never hold a reference into the store.
"""
import asyncio
import itertools
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from minisocial.core.exceptions import Forbidden, NotFound, ValidationError
from minisocial.schemas.comment_schema import CommentResponse
from minisocial.schemas.post_schema import PostResponse
from minisocial.services.post_store import PostStore
from minisocial.services.user_service import DUPLICATE_USER_MESSAGE, UserStore

logger = logging.getLogger(__name__)


@dataclass
class StoredComment:
    id: int
    post_id: str
    username: str
    text: str
    created_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class StoredPost:
    id: str
    user_id: str
    username: str
    sequence: int
    text: Optional[str] = None
    image_url: Optional[str] = None
    likes: List[str] = field(default_factory=list)
    comments: List[StoredComment] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    def touch(self) -> None:
        self.updated_at = datetime.utcnow()


@dataclass
class StoredUser:
    id: str
    username: str
    email: str
    hashed_password: str
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)


class InMemoryPostStore(PostStore):

    def __init__(self):
        self._posts: Dict[str, StoredPost] = {}
        self._lock = asyncio.Lock()
        self._sequence = itertools.count(1)
        self._comment_ids = itertools.count(1)

    def _get(self, post_id: str) -> StoredPost:
        post = self._posts.get(post_id)
        if post is None:
            raise NotFound()
        return post

    def _page(self, posts: List[StoredPost], page: int, page_size: int) -> Tuple[List[PostResponse], int]:
        ordered = sorted(posts, key=lambda p: (p.created_at, p.sequence), reverse=True)
        offset = self.page_offset(page, page_size)
        items = ordered[offset:offset + page_size]
        return [PostResponse.model_validate(post) for post in items], len(ordered)

    async def create_post(
        self,
        owner_id: str,
        author_name: str,
        text: Optional[str] = None,
        image_url: Optional[str] = None,
    ) -> PostResponse:
        post_data = self.validate_post(text, image_url)

        async with self._lock:
            post = StoredPost(
                id=str(uuid.uuid4()),
                user_id=owner_id,
                username=author_name,
                sequence=next(self._sequence),
                text=post_data.text,
                image_url=post_data.image_url,
            )
            self._posts[post.id] = post
            logger.info(f"User {owner_id} created post {post.id} (memory)")
            return PostResponse.model_validate(post)

    async def get_post(self, post_id: str) -> PostResponse:
        return PostResponse.model_validate(self._get(post_id))

    async def list_posts(self, page: int = 1, page_size: int = 10) -> Tuple[List[PostResponse], int]:
        return self._page(list(self._posts.values()), page, page_size)

    async def list_posts_by_owner(
        self, owner_id: str, page: int = 1, page_size: int = 10
    ) -> Tuple[List[PostResponse], int]:
        owned = [post for post in self._posts.values() if post.user_id == owner_id]
        return self._page(owned, page, page_size)

    async def toggle_like(self, post_id: str, user_id: str) -> PostResponse:
        async with self._lock:
            post = self._get(post_id)
            if user_id in post.likes:
                post.likes.remove(user_id)
            else:
                post.likes.append(user_id)
            post.touch()
            return PostResponse.model_validate(post)

    async def set_like(self, post_id: str, user_id: str, liked: bool) -> PostResponse:
        async with self._lock:
            post = self._get(post_id)
            if liked and user_id not in post.likes:
                post.likes.append(user_id)
                post.touch()
            elif not liked and user_id in post.likes:
                post.likes.remove(user_id)
                post.touch()
            return PostResponse.model_validate(post)

    async def add_comment(self, post_id: str, author_name: str, text: str) -> CommentResponse:
        comment_data = self.validate_comment(text)

        async with self._lock:
            post = self._get(post_id)
            comment = StoredComment(
                id=next(self._comment_ids),
                post_id=post_id,
                username=author_name,
                text=comment_data.text,
            )
            post.comments.append(comment)
            post.touch()
            return CommentResponse.model_validate(comment)

    async def list_comments(self, post_id: str) -> List[CommentResponse]:
        return [CommentResponse.model_validate(c) for c in self._get(post_id).comments]

    async def delete_post(self, post_id: str, requesting_user_id: str) -> None:
        async with self._lock:
            post = self._get(post_id)
            if post.user_id != requesting_user_id:
                raise Forbidden("Not authorized to delete this post")
            del self._posts[post_id]

        logger.info(f"User {requesting_user_id} deleted post {post_id} (memory)")
        await self.release_image(post.image_url)


class InMemoryUserStore(UserStore):

    def __init__(self):
        self._users: Dict[str, StoredUser] = {}
        self._lock = asyncio.Lock()

    async def get_user_by_id(self, user_id: str) -> Optional[StoredUser]:
        return self._users.get(user_id)

    async def get_user_by_email(self, email: str) -> Optional[StoredUser]:
        email = email.lower()
        return next((u for u in self._users.values() if u.email == email), None)

    async def get_user_by_username(self, username: str) -> Optional[StoredUser]:
        return next((u for u in self._users.values() if u.username == username), None)

    async def create_user(self, username: str, email: str, hashed_password: str) -> StoredUser:
        async with self._lock:
            if await self.get_user_by_email(email) or await self.get_user_by_username(username):
                raise ValidationError(DUPLICATE_USER_MESSAGE)

            user = StoredUser(
                id=str(uuid.uuid4()),
                username=username,
                email=email.lower(),
                hashed_password=hashed_password,
            )
            self._users[user.id] = user
            logger.info(f"Registered user {username} ({user.id}) (memory)")
            return user
