"""Schemas for password recovery"""
from typing import Optional

from pydantic import BaseModel


class PasswordResetRequest(BaseModel):
    email: str


class PasswordResetUpdate(BaseModel):
    password: str
    token_hash: Optional[str] = None
    token: Optional[str] = None
    email: Optional[str] = None
    code: Optional[str] = None
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None


class RecoverySessionResponse(BaseModel):
    message: str = "Valid recovery token"
    user_id: int
    email: str
    access_token: str
    refresh_token: str


class MessageResponse(BaseModel):
    message: str
