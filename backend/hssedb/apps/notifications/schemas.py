from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from .models import NotificationChannel, NotificationStatus


class NotificationLogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    event_id: str
    event_type: str
    aggregate_ref: Optional[str] = None
    template_key: str
    language: str
    channel: NotificationChannel
    audience: str
    recipient: Optional[str] = None
    subject: str
    body: str
    status: NotificationStatus
    error: Optional[str] = None
    created_at: datetime
    sent_at: Optional[datetime] = None
