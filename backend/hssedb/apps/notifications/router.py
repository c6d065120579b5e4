from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...database import get_read_db
from . import models, schemas, service

router = APIRouter(prefix="/api", tags=["notifications"])


@router.get("/notifications", response_model=List[schemas.NotificationLogRead])
def list_notification_logs(
    event_id: Optional[str] = None,
    status: Optional[models.NotificationStatus] = None,
    db: Session = Depends(get_read_db),
):
    return service.list_notifications(db, event_id=event_id, status=status)
