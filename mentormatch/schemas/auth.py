from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    # Bcrypt has a 72-byte limit.
    password: str = Field(..., min_length=6, max_length=72)
    role: str
    program: Optional[str] = None
    major: Optional[str] = None
    expertise_areas: List[str] = Field(default_factory=list)
    interests: List[str] = Field(default_factory=list)
    mentoring_goals: Optional[str] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str
    role: str


class TokenData(BaseModel):
    email: Optional[str] = None
    role: Optional[str] = None
