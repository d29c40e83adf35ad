import logging
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import select, insert, delete, update, desc, func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from minisocial.config import settings
from minisocial.core.exceptions import Forbidden, NotFound, StorageError
from minisocial.models.post import Post
from minisocial.models.comment import Comment
from minisocial.models.like import PostLike
from minisocial.schemas.comment_schema import CommentResponse
from minisocial.schemas.post_schema import PostResponse
from minisocial.services.post_store import PostStore

logger = logging.getLogger(__name__)

class PostService(PostStore):
    """Post store backed by the SQL database of the current request session"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _storage_error(self, action: str, error: Exception) -> StorageError:
        await self.db.rollback()
        logger.error(f"Failed to {action}: {error}")
        return StorageError(f"Failed to {action}")

    def _post_query(self):
        return select(Post).options(
            selectinload(Post.likes),
            selectinload(Post.comments),
        ).execution_options(populate_existing=True)

    async def _load_post(self, post_id: str) -> Post:
        try:
            result = await self.db.execute(self._post_query().where(Post.id == post_id))
            post = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise await self._storage_error("load post", e) from e

        if not post:
            raise NotFound()
        return post

    async def _require_post(self, post_id: str) -> None:
        try:
            result = await self.db.execute(select(Post.id).where(Post.id == post_id))
            exists = result.scalar_one_or_none() is not None
        except SQLAlchemyError as e:
            raise await self._storage_error("load post", e) from e

        if not exists:
            raise NotFound()

    async def _add_like(self, post_id: str, user_id: str) -> bool:
        """Atomic add-to-set; False when the user is already in the set"""
        conn = await self.db.connection()
        values = {"post_id": post_id, "user_id": user_id}
        dialect = conn.dialect.name

        if dialect in ("postgresql", "sqlite"):
            dialect_insert = postgresql.insert if dialect == "postgresql" else sqlite.insert
            stmt = dialect_insert(PostLike).values(**values).on_conflict_do_nothing(
                index_elements=["post_id", "user_id"]
            )
            result = await conn.execute(stmt)
            return result.rowcount == 1

        try:
            async with self.db.begin_nested():
                await conn.execute(insert(PostLike).values(**values))
            return True
        except IntegrityError:
            return False

    async def _remove_like(self, post_id: str, user_id: str) -> bool:
        """Atomic remove-from-set; False when the user was not in the set"""
        conn = await self.db.connection()
        result = await conn.execute(
            delete(PostLike).where(
                PostLike.post_id == post_id,
                PostLike.user_id == user_id,
            )
        )
        return result.rowcount == 1

    async def _touch(self, post_id: str) -> None:
        conn = await self.db.connection()
        result = await conn.execute(
            update(Post).where(Post.id == post_id).values(updated_at=datetime.utcnow())
        )
        if result.rowcount == 0:
            # Deleted while we were mutating it
            await self.db.rollback()
            raise NotFound()

    async def create_post(
        self,
        owner_id: str,
        author_name: str,
        text: Optional[str] = None,
        image_url: Optional[str] = None,
    ) -> PostResponse:
        """Create a new post"""
        post_data = self.validate_post(text, image_url)

        post = Post(
            user_id=owner_id,
            username=author_name,
            text=post_data.text,
            image_url=post_data.image_url,
        )

        try:
            self.db.add(post)
            await self.db.commit()
        except SQLAlchemyError as e:
            raise await self._storage_error("create post", e) from e

        logger.info(f"User {owner_id} created post {post.id}")
        return await self.get_post(post.id)

    async def get_post(self, post_id: str) -> PostResponse:
        """Get a post by ID"""
        post = await self._load_post(post_id)
        return PostResponse.model_validate(post)

    async def _list(
        self, owner_id: Optional[str], page: int, page_size: int
    ) -> Tuple[List[PostResponse], int]:
        count_stmt = select(func.count()).select_from(Post)
        stmt = self._post_query().order_by(desc(Post.created_at))

        if owner_id is not None:
            count_stmt = count_stmt.where(Post.user_id == owner_id)
            stmt = stmt.where(Post.user_id == owner_id)

        stmt = stmt.offset(self.page_offset(page, page_size)).limit(page_size)

        try:
            total = (await self.db.execute(count_stmt)).scalar_one()
            posts = (await self.db.execute(stmt)).scalars().all()
        except SQLAlchemyError as e:
            raise await self._storage_error("list posts", e) from e

        return [PostResponse.model_validate(post) for post in posts], total

    async def list_posts(self, page: int = 1, page_size: int = 10) -> Tuple[List[PostResponse], int]:
        """Get all posts, newest first"""
        return await self._list(None, page, page_size)

    async def list_posts_by_owner(
        self, owner_id: str, page: int = 1, page_size: int = 10
    ) -> Tuple[List[PostResponse], int]:
        """Get posts by a specific user, newest first"""
        return await self._list(owner_id, page, page_size)

    async def toggle_like(self, post_id: str, user_id: str) -> PostResponse:
        """
        Flip the user's membership in the like set.

        Every toggle ends with exactly one successful DELETE or INSERT of the
        (post, user) row, so concurrent toggles never cancel each other out.
        """
        await self._require_post(post_id)

        try:
            for attempt in range(settings.LIKE_TOGGLE_MAX_ATTEMPTS):
                if await self._remove_like(post_id, user_id):
                    liked = False
                elif await self._add_like(post_id, user_id):
                    liked = True
                else:
                    # Another toggle inserted the row between our DELETE and INSERT
                    await self.db.rollback()
                    logger.debug(f"Like toggle race on post {post_id}, attempt {attempt + 1}")
                    continue

                await self._touch(post_id)
                await self.db.commit()
                logger.info(f"User {user_id} {'liked' if liked else 'unliked'} post {post_id}")
                return await self.get_post(post_id)
        except SQLAlchemyError as e:
            raise await self._storage_error("toggle like", e) from e

        logger.error(f"Giving up toggling like of user {user_id} on post {post_id}")
        raise StorageError("Failed to toggle like")

    async def set_like(self, post_id: str, user_id: str, liked: bool) -> PostResponse:
        """Like or unlike a post without toggling"""
        await self._require_post(post_id)

        try:
            if liked:
                changed = await self._add_like(post_id, user_id)
            else:
                changed = await self._remove_like(post_id, user_id)

            if changed:
                await self._touch(post_id)
            await self.db.commit()
        except SQLAlchemyError as e:
            raise await self._storage_error("update like", e) from e

        return await self.get_post(post_id)

    async def add_comment(self, post_id: str, author_name: str, text: str) -> CommentResponse:
        """Append a comment to a post"""
        comment_data = self.validate_comment(text)
        await self._require_post(post_id)

        comment = Comment(
            post_id=post_id,
            username=author_name,
            text=comment_data.text,
        )

        try:
            self.db.add(comment)
            await self.db.flush()
            await self._touch(post_id)
            await self.db.commit()
        except SQLAlchemyError as e:
            raise await self._storage_error("add comment", e) from e

        logger.info(f"{author_name} commented on post {post_id}")
        return CommentResponse.model_validate(comment)

    async def list_comments(self, post_id: str) -> List[CommentResponse]:
        """Get the comments of a post, oldest first"""
        await self._require_post(post_id)

        try:
            result = await self.db.execute(
                select(Comment).where(Comment.post_id == post_id).order_by(Comment.id)
            )
            comments = result.scalars().all()
        except SQLAlchemyError as e:
            raise await self._storage_error("list comments", e) from e

        return [CommentResponse.model_validate(comment) for comment in comments]

    async def delete_post(self, post_id: str, requesting_user_id: str) -> None:
        """Delete a post"""
        post = await self._load_post(post_id)

        if post.user_id != requesting_user_id:
            raise Forbidden("Not authorized to delete this post")

        image_url = post.image_url

        try:
            await self.db.delete(post)
            await self.db.commit()
        except SQLAlchemyError as e:
            raise await self._storage_error("delete post", e) from e

        logger.info(f"User {requesting_user_id} deleted post {post_id}")
        await self.release_image(image_url)
