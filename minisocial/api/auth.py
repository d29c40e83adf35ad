from fastapi import APIRouter, Depends, HTTPException, status
import logging

from minisocial.api.deps import get_user_store
from minisocial.core.exceptions import PostStoreError
from minisocial.schemas.auth_schema import AuthResponse, LoginRequest
from minisocial.schemas.user_schema import CurrentUser, UserCreate, UserEnvelope, UserResponse
from minisocial.services.auth_service import AuthService, get_current_user
from minisocial.services.user_service import DUPLICATE_USER_MESSAGE, UserStore

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserCreate,
    users: UserStore = Depends(get_user_store),
):
    """Register a new user"""
    try:
        auth_service = AuthService(users)

        # Check if user exists
        if (
            await users.get_user_by_email(user_data.email)
            or await users.get_user_by_username(user_data.username)
        ):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=DUPLICATE_USER_MESSAGE
            )

        user = await auth_service.register(user_data)
        return AuthResponse(
            message="User registered successfully",
            token=auth_service.create_access_token(user),
            user=UserResponse.model_validate(user),
        )
    except (HTTPException, PostStoreError):
        raise
    except Exception as e:
        logger.error(f"Registration error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Registration failed"
        )

@router.post("/login", response_model=AuthResponse)
async def login(
    credentials: LoginRequest,
    users: UserStore = Depends(get_user_store),
):
    """Login user and return a bearer token"""
    try:
        auth_service = AuthService(users)

        user = await auth_service.authenticate_user(credentials.email.strip(), credentials.password)

        if not user:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid credentials",
                headers={"WWW-Authenticate": "Bearer"},
            )

        return AuthResponse(
            message="Login successful",
            token=auth_service.create_access_token(user),
            user=UserResponse.model_validate(user),
        )
    except (HTTPException, PostStoreError):
        raise
    except Exception as e:
        logger.error(f"Login error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Login failed"
        )

@router.get("/me", response_model=UserEnvelope)
async def get_me(
    current_user: CurrentUser = Depends(get_current_user),
    users: UserStore = Depends(get_user_store),
):
    """Get the profile of the authenticated user"""
    user = await users.get_user_by_id(current_user.id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return UserEnvelope(user=UserResponse.model_validate(user))
