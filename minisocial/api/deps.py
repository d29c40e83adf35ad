"""Request-scoped access to the configured stores.

``app.state.store_backend`` is decided once at startup (see
``minisocial.main``); handlers never branch on it themselves.
"""
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from minisocial.db.session import get_db
from minisocial.services.post_service import PostService
from minisocial.services.post_store import PostStore
from minisocial.services.user_service import UserService, UserStore

MEMORY_BACKEND = "memory"
DATABASE_BACKEND = "database"


def get_post_store(request: Request, db: AsyncSession = Depends(get_db)) -> PostStore:
    if request.app.state.store_backend == MEMORY_BACKEND:
        return request.app.state.memory_posts
    return PostService(db)


def get_user_store(request: Request, db: AsyncSession = Depends(get_db)) -> UserStore:
    if request.app.state.store_backend == MEMORY_BACKEND:
        return request.app.state.memory_users
    return UserService(db)
