from sqlalchemy import Column, String, Index
from sqlalchemy.orm import relationship
from minisocial.db.base import BaseModel

class User(BaseModel):
    __tablename__ = "users"

    username = Column(String(30), unique=True, index=True, nullable=False)
    email = Column(String(100), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)

    # Relationships
    posts = relationship("Post", back_populates="user")

    __table_args__ = (
        Index('ix_users_created_at', 'created_at'),
    )
