from typing import List

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user_allow_banned
from ..database import get_db
from ..services import alerts as alert_service
from ._errors import service_errors

# purpose: recipient-only inbox for in-app alerts
# status: active

router = APIRouter(prefix="/api/alerts", tags=["alerts"])


@router.get("", response_model=List[schemas.AlertOut])
def list_alerts(
    read: alert_service.ReadFilter = Query("all"),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user_allow_banned),
):
    return alert_service.list_for_user(db, user.id, read)


@router.get("/unread-count")
def unread_alert_count(
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user_allow_banned),
):
    return {"unread": alert_service.unread_count(db, user.id)}


@router.post("/read-all")
def read_all_alerts(
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user_allow_banned),
):
    updated = alert_service.mark_all_read(db, user.id)
    db.commit()
    return {"updated": updated}


@router.post("/{alert_id}/read", response_model=schemas.AlertOut)
def read_alert(
    alert_id: int,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user_allow_banned),
):
    with service_errors(db):
        alert = alert_service.get_alert(db, alert_id)
        alert_service.mark_read(db, alert, user)
        db.commit()
    db.refresh(alert)
    return alert


@router.delete("/{alert_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_alert(
    alert_id: int,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user_allow_banned),
):
    with service_errors(db):
        alert = alert_service.get_alert(db, alert_id)
        alert_service.delete_alert(db, alert, user)
        db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
