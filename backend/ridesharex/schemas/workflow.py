# ridesharex/schemas/workflow.py
from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


class StatusUpdate(BaseModel):
    """
    Body of every approval endpoint: { "status": "...", "reason": "..." }
    reason is optional, even for rejections.
    """
    status: str = Field(min_length=1, max_length=30)
    reason: Optional[str] = Field(default=None, max_length=2000)


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=2000)


class AdminLogOut(BaseModel):
    id: int
    user_id: Optional[int] = None
    action: str
    entity_type: str
    entity_id: Optional[int] = None
    target_user_id: Optional[int] = None
    details: Dict[str, Any]
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationOut(BaseModel):
    id: int
    user_id: int
    type: str
    title: str
    message: str
    data: Dict[str, Any]
    priority: str
    is_read: bool
    is_sent: bool
    sent_at: Optional[datetime] = None
    read_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}
