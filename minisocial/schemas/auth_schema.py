from pydantic import BaseModel, Field
from typing import Optional

from minisocial.schemas.common import CamelModel
from minisocial.schemas.user_schema import UserResponse

class LoginRequest(BaseModel):
    """Schema for login request"""
    email: str = Field(..., min_length=1, description="Email address")
    password: str = Field(..., min_length=1, description="Password")

class TokenData(BaseModel):
    """Schema for token payload data"""
    user_id: str = Field(..., description="User ID")
    username: str = Field(..., description="Username")

class AuthResponse(CamelModel):
    """Schema for register/login response"""
    success: bool = True
    message: Optional[str] = None
    token: str
    user: UserResponse
