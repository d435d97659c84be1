"""
Pydantic schemas for authentication requests and responses.
"""
from pydantic import BaseModel, EmailStr, Field


class UserLogin(BaseModel):
    """Request schema for user login"""
    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=6)


class UserCreate(BaseModel):
    """Request schema for user registration"""
    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=72)


class UserResponse(BaseModel):
    """Response schema for user data (without password)"""
    id: int
    username: str
    email: str
    is_active: bool

    model_config = {"from_attributes": True}  # Allows ORM model conversion


class Token(BaseModel):
    """Response schema for JWT token"""
    access_token: str
    token_type: str = "bearer"
    user: UserResponse
