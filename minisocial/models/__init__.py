"""
Models package for Mini Social API
"""
from minisocial.db.base import Base, BaseModel
from minisocial.models.user import User
from minisocial.models.post import Post
from minisocial.models.comment import Comment
from minisocial.models.like import PostLike

__all__ = [
    'Base',
    'BaseModel',
    'User',
    'Post',
    'Comment',
    'PostLike',
]
