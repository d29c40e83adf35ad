import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from minisocial.core.exceptions import StorageError, ValidationError
from minisocial.models.user import User

logger = logging.getLogger(__name__)

DUPLICATE_USER_MESSAGE = "User with this email or username already exists"

class UserStore(ABC):
    """Lookup and creation of user accounts for the auth layer"""

    @abstractmethod
    async def get_user_by_id(self, user_id: str) -> Optional[Any]:
        ...

    @abstractmethod
    async def get_user_by_email(self, email: str) -> Optional[Any]:
        ...

    @abstractmethod
    async def get_user_by_username(self, username: str) -> Optional[Any]:
        ...

    @abstractmethod
    async def create_user(self, username: str, email: str, hashed_password: str) -> Any:
        ...

class UserService(UserStore):
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_one(self, stmt) -> Optional[User]:
        try:
            result = await self.db.execute(stmt)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Error loading user: {e}")
            raise StorageError("Failed to load user") from e

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        """Get user by ID"""
        return await self._get_one(select(User).where(User.id == user_id))

    async def get_user_by_email(self, email: str) -> Optional[User]:
        """Get user by email"""
        return await self._get_one(select(User).where(User.email == email.lower()))

    async def get_user_by_username(self, username: str) -> Optional[User]:
        """Get user by username"""
        return await self._get_one(select(User).where(User.username == username))

    async def create_user(self, username: str, email: str, hashed_password: str) -> User:
        """Create a new user"""
        user = User(
            username=username,
            email=email.lower(),
            hashed_password=hashed_password,
        )

        try:
            self.db.add(user)
            await self.db.commit()
            await self.db.refresh(user)
        except IntegrityError as e:
            # Lost a race against a concurrent registration
            await self.db.rollback()
            raise ValidationError(DUPLICATE_USER_MESSAGE) from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Error creating user: {e}")
            raise StorageError("Failed to create user") from e

        logger.info(f"Registered user {user.username} ({user.id})")
        return user
