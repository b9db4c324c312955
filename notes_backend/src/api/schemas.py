from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, EmailStr

from src.api.models import CONTENT_MAX_LENGTH, TITLE_MAX_LENGTH


# Auth / Tokens

class TokenResponse(BaseModel):
    """Token response for successful registration or login"""
    token: str = Field(..., description="JWT access token")
    token_type: str = Field("bearer", description="Token type")


class LoginRequest(BaseModel):
    """Login with email and password"""
    email: str = Field(..., description="Account email")
    password: str = Field(..., description="Plaintext password")


# Users

class UserCreateRequest(BaseModel):
    """Request model to register a new user"""
    username: str = Field(..., min_length=3, max_length=50, description="Unique username")
    email: EmailStr = Field(..., description="User email, used as the login handle")
    password: str = Field(..., min_length=6, description="Plaintext password (min 6 chars)")


class UserUpdateRequest(BaseModel):
    """Profile update request (partial)"""
    username: Optional[str] = Field(None, min_length=3, max_length=50)
    email: Optional[EmailStr] = Field(None)
    password: Optional[str] = Field(None, min_length=6)


class UserResponse(BaseModel):
    """User response without sensitive fields"""
    id: int
    username: str
    email: EmailStr
    role: str
    created_at: datetime

    class Config:
        from_attributes = True


# Notes
# Only title and content are accepted; any owner or created_at keys in a payload are ignored.

class NoteCreateRequest(BaseModel):
    """Create note request"""
    title: str = Field(..., min_length=1, max_length=TITLE_MAX_LENGTH)
    content: str = Field("", max_length=CONTENT_MAX_LENGTH, description="Note content")


class NoteReplaceRequest(BaseModel):
    """Full update request"""
    title: str = Field(..., min_length=1, max_length=TITLE_MAX_LENGTH)
    content: str = Field(..., max_length=CONTENT_MAX_LENGTH)


class NoteUpdateRequest(BaseModel):
    """Update note request (partial)"""
    title: Optional[str] = Field(None, min_length=1, max_length=TITLE_MAX_LENGTH)
    content: Optional[str] = Field(None, max_length=CONTENT_MAX_LENGTH)


class NoteResponse(BaseModel):
    """Note response model; the owner is never exposed"""
    id: int
    title: str
    content: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
