from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional
from datetime import datetime

from minisocial.schemas.common import CamelModel

class UserCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=30)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=72)

    @field_validator("username", "email", mode="before")
    @classmethod
    def strip_value(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value: str) -> str:
        return value.lower()

class UserResponse(CamelModel):
    id: str
    username: str
    email: str
    created_at: datetime

class UserEnvelope(CamelModel):
    success: bool = True
    user: UserResponse

class CurrentUser(BaseModel):
    """Identity of the authenticated caller, as verified from the bearer token"""
    id: str
    username: str
