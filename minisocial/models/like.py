from sqlalchemy import Column, String, ForeignKey, UniqueConstraint, Index
from sqlalchemy.orm import relationship
from minisocial.db.base import BaseModel

class PostLike(BaseModel):
    """One member of a post's like set"""
    __tablename__ = "post_likes"

    post_id = Column(String(36), ForeignKey("posts.id", ondelete="CASCADE"), nullable=False)
    # Identifier supplied by the auth layer; no foreign key so the set stays a plain set of ids
    user_id = Column(String(36), nullable=False)

    # Relationships
    post = relationship("Post", back_populates="likes")

    # Uniqueness makes insert-or-ignore an atomic add-to-set
    __table_args__ = (
        UniqueConstraint('post_id', 'user_id', name='uq_post_likes_post_user'),
        Index('ix_post_likes_user_id', 'user_id'),
    )
