"""Schemas for workspaces and billing"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class WorkspaceResponse(BaseModel):
    id: int
    name: str
    plan: str
    trial_start_at: Optional[datetime] = None
    trial_expires_at: Optional[datetime] = None
    is_pro_access: bool
    is_trial_active: bool
    trial_days_left: int
    storage_used_gb: float


class WebhookAck(BaseModel):
    received: bool = True
