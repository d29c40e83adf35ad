import logging
from datetime import datetime, timedelta
from typing import Any, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from minisocial.api.deps import get_user_store
from minisocial.config import settings
from minisocial.schemas.auth_schema import TokenData
from minisocial.schemas.user_schema import CurrentUser, UserCreate
from minisocial.services.user_service import UserStore

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")

class AuthService:
    def __init__(self, users: UserStore):
        self.users = users

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        """Verify a password against its hash"""
        return pwd_context.verify(plain_password, hashed_password)

    def get_password_hash(self, password: str) -> str:
        """Hash a password"""
        return pwd_context.hash(password)

    async def register(self, user_data: UserCreate) -> Any:
        """Create a new user with a hashed password"""
        return await self.users.create_user(
            username=user_data.username,
            email=user_data.email,
            hashed_password=self.get_password_hash(user_data.password),
        )

    async def authenticate_user(self, email: str, password: str) -> Optional[Any]:
        """Authenticate a user by email and password"""
        user = await self.users.get_user_by_email(email)

        if not user or not self.verify_password(password, user.hashed_password):
            return None

        return user

    def create_access_token(self, user: Any, expires_delta: Optional[timedelta] = None) -> str:
        """Create a JWT access token"""
        if expires_delta is None:
            expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

        to_encode = {
            "sub": user.id,
            "username": user.username,
            "exp": datetime.utcnow() + expires_delta,
            "type": "access",
        }
        return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

    def verify_token(self, token: str) -> Optional[TokenData]:
        """Verify a JWT token"""
        try:
            payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        except JWTError:
            return None

        if payload.get("type") != "access":
            return None

        user_id = payload.get("sub")
        username = payload.get("username")

        if user_id is None or username is None:
            return None

        return TokenData(user_id=user_id, username=username)

async def get_current_user(
    token: str = Depends(oauth2_scheme),
    users: UserStore = Depends(get_user_store),
) -> CurrentUser:
    """Dependency to get current authenticated user"""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    auth_service = AuthService(users)
    token_data = auth_service.verify_token(token)

    if token_data is None:
        raise credentials_exception

    user = await users.get_user_by_id(token_data.user_id)
    if user is None:
        raise credentials_exception

    return CurrentUser(id=user.id, username=user.username)
