from fastapi import APIRouter, Depends, HTTPException, status, Query, UploadFile, File, Form
from typing import List, Optional, Tuple
import logging
import math

from minisocial.api.deps import get_post_store
from minisocial.config import settings
from minisocial.core.exceptions import PostStoreError
from minisocial.schemas.comment_schema import CommentCreate, CommentListResponse
from minisocial.schemas.common import MessageResponse
from minisocial.schemas.post_schema import CommentEnvelope, PostEnvelope, PostListResponse, PostResponse
from minisocial.schemas.user_schema import CurrentUser
from minisocial.services.auth_service import get_current_user
from minisocial.services.post_store import PostStore
from minisocial.utils.file_upload import delete_file, save_upload_file

logger = logging.getLogger(__name__)

router = APIRouter()

def _positive_int(value: Optional[str], default: int) -> int:
    """Lenient query parsing: missing, non-numeric or < 1 falls back to the default"""
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number >= 1 else default

def _pagination(page: Optional[str], limit: Optional[str]) -> Tuple[int, int]:
    page_number = _positive_int(page, 1)
    page_size = min(_positive_int(limit, settings.DEFAULT_PAGE_SIZE), settings.MAX_PAGE_SIZE)
    return page_number, page_size

def _page_response(posts: List[PostResponse], total: int, page: int, limit: int) -> PostListResponse:
    return PostListResponse(
        count=len(posts),
        total=total,
        total_pages=math.ceil(total / limit),
        current_page=page,
        posts=posts,
    )

@router.get("", response_model=PostListResponse)
async def get_posts(
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    store: PostStore = Depends(get_post_store),
):
    """Get posts with pagination, newest first"""
    page_number, page_size = _pagination(page, limit)
    try:
        posts, total = await store.list_posts(page_number, page_size)
        return _page_response(posts, total, page_number, page_size)
    except (HTTPException, PostStoreError):
        raise
    except Exception as e:
        logger.error(f"Get posts error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get posts"
        )

@router.get("/user/{user_id}", response_model=PostListResponse)
async def get_user_posts(
    user_id: str,
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    store: PostStore = Depends(get_post_store),
):
    """Get posts of one user with pagination, newest first"""
    page_number, page_size = _pagination(page, limit)
    try:
        posts, total = await store.list_posts_by_owner(user_id, page_number, page_size)
        return _page_response(posts, total, page_number, page_size)
    except (HTTPException, PostStoreError):
        raise
    except Exception as e:
        logger.error(f"Get user posts error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get posts"
        )

@router.post("", response_model=PostEnvelope, status_code=status.HTTP_201_CREATED)
async def create_post(
    text: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    current_user: CurrentUser = Depends(get_current_user),
    store: PostStore = Depends(get_post_store),
):
    """Create a new post with text, an image, or both"""
    image_url = None
    try:
        # Browsers send an empty file part when no image was picked
        if image is not None and image.filename:
            image_url = await save_upload_file(image)

        post = await store.create_post(
            current_user.id,
            current_user.username,
            text=text,
            image_url=image_url,
        )
        return PostEnvelope(message="Post created successfully", post=post)
    except (HTTPException, PostStoreError):
        if image_url:
            await delete_file(image_url)
        raise
    except Exception as e:
        if image_url:
            await delete_file(image_url)
        logger.error(f"Create post error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create post"
        )

@router.get("/{post_id}", response_model=PostEnvelope)
async def get_post(
    post_id: str,
    store: PostStore = Depends(get_post_store),
):
    """Get a post by ID"""
    try:
        post = await store.get_post(post_id)
        return PostEnvelope(post=post)
    except (HTTPException, PostStoreError):
        raise
    except Exception as e:
        logger.error(f"Get post error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get post"
        )

@router.put("/{post_id}/like", response_model=PostEnvelope)
async def toggle_like(
    post_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    store: PostStore = Depends(get_post_store),
):
    """Like the post, or unlike it if the current user already likes it"""
    try:
        post = await store.toggle_like(post_id, current_user.id)
        liked = current_user.id in post.likes
        return PostEnvelope(message="Post liked" if liked else "Post unliked", post=post)
    except (HTTPException, PostStoreError):
        raise
    except Exception as e:
        logger.error(f"Toggle like error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to like post"
        )

@router.post("/{post_id}/likes", response_model=PostEnvelope)
async def like_post(
    post_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    store: PostStore = Depends(get_post_store),
):
    """Like a post (no-op if already liked)"""
    try:
        post = await store.set_like(post_id, current_user.id, liked=True)
        return PostEnvelope(message="Post liked", post=post)
    except (HTTPException, PostStoreError):
        raise
    except Exception as e:
        logger.error(f"Like post error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to like post"
        )

@router.delete("/{post_id}/likes", response_model=PostEnvelope)
async def unlike_post(
    post_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    store: PostStore = Depends(get_post_store),
):
    """Unlike a post (no-op if not liked)"""
    try:
        post = await store.set_like(post_id, current_user.id, liked=False)
        return PostEnvelope(message="Post unliked", post=post)
    except (HTTPException, PostStoreError):
        raise
    except Exception as e:
        logger.error(f"Unlike post error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to unlike post"
        )

@router.get("/{post_id}/comments", response_model=CommentListResponse)
async def get_comments(
    post_id: str,
    store: PostStore = Depends(get_post_store),
):
    """Get the comments of a post, oldest first"""
    try:
        comments = await store.list_comments(post_id)
        return CommentListResponse(count=len(comments), comments=comments)
    except (HTTPException, PostStoreError):
        raise
    except Exception as e:
        logger.error(f"Get comments error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get comments"
        )

@router.post("/{post_id}/comment", response_model=CommentEnvelope, status_code=status.HTTP_201_CREATED)
async def add_comment(
    post_id: str,
    comment_data: CommentCreate,
    current_user: CurrentUser = Depends(get_current_user),
    store: PostStore = Depends(get_post_store),
):
    """Add a comment to a post"""
    try:
        comment = await store.add_comment(post_id, current_user.username, comment_data.text)
        post = await store.get_post(post_id)
        return CommentEnvelope(message="Comment added successfully", comment=comment, post=post)
    except (HTTPException, PostStoreError):
        raise
    except Exception as e:
        logger.error(f"Add comment error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to add comment"
        )

@router.delete("/{post_id}", response_model=MessageResponse)
async def delete_post(
    post_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    store: PostStore = Depends(get_post_store),
):
    """Delete a post owned by the current user"""
    try:
        await store.delete_post(post_id, current_user.id)
        return MessageResponse(message="Post deleted successfully")
    except (HTTPException, PostStoreError):
        raise
    except Exception as e:
        logger.error(f"Delete post error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete post"
        )
