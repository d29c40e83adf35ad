from sqlalchemy import Column, String, Text, ForeignKey, Index
from sqlalchemy.orm import relationship
from minisocial.db.base import BaseModel

class Post(BaseModel):
    __tablename__ = "posts"

    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    # Snapshot of the author's username at creation time, never re-synced
    username = Column(String(30), nullable=False)
    text = Column(Text, nullable=True)
    image_url = Column(String(255), nullable=True)

    # Relationships
    user = relationship("User", back_populates="posts")
    likes = relationship("PostLike", back_populates="post", cascade="all, delete-orphan")
    comments = relationship(
        "Comment",
        back_populates="post",
        cascade="all, delete-orphan",
        order_by="Comment.id",
    )

    # Indexes for better performance
    __table_args__ = (
        Index('ix_posts_created_at', 'created_at'),
        Index('ix_posts_user_id_created_at', 'user_id', 'created_at'),
    )
