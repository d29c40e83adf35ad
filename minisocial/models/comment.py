from sqlalchemy import Column, String, Text, Integer, ForeignKey, Index
from sqlalchemy.orm import relationship
from minisocial.db.base import BaseModel

class Comment(BaseModel):
    __tablename__ = "comments"

    # Integer key: insertion order is the comment order
    id = Column(Integer, primary_key=True, autoincrement=True)
    post_id = Column(String(36), ForeignKey("posts.id", ondelete="CASCADE"), nullable=False)
    username = Column(String(30), nullable=False)
    text = Column(Text, nullable=False)

    # Relationships
    post = relationship("Post", back_populates="comments")

    __table_args__ = (
        Index('ix_comments_post_id', 'post_id'),
    )
