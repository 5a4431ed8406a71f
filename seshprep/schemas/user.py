"""Schemas for accounts and sign-in"""
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel


class UserCreate(BaseModel):
    email: str
    password: str
    display_name: Optional[str] = None
    invitation_token: Optional[str] = None


class UserLogin(BaseModel):
    email: str
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserSummary(BaseModel):
    id: int
    email: str
    display_name: str
    avatar_url: Optional[str] = None

    class Config:
        from_attributes = True


class UserResponse(UserSummary):
    bio: Optional[str] = None
    prefs: Optional[Dict[str, Any]] = None
    created_at: datetime
    last_login_at: Optional[datetime] = None


class UserUpdate(BaseModel):
    display_name: Optional[str] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    prefs: Optional[Dict[str, Any]] = None


class SignOutResponse(BaseModel):
    message: str
    deleted: bool = False
