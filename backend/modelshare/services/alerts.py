"""In-app alerts and their out-of-band delivery scheduling."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Literal

from sqlalchemy import event
from sqlalchemy.orm import Session

from .. import models, tasks
from .errors import Forbidden, NotFound

# purpose: persist user alerts and hand committed ones to the delivery worker
# status: active
# depends_on: backend.modelshare.models.Alert, backend.modelshare.tasks.deliver_alert

logger = logging.getLogger(__name__)

ReadFilter = Literal["all", "read", "unread"]

ASSET_ALERT_TYPES = frozenset({"asset_approved", "asset_rejected", "asset_removal"})
REQUEST_ALERT_TYPES = frozenset(
    {"request_received", "request_accepted", "request_declined", "request_message"}
)

_PENDING_DELIVERIES = "modelshare.pending_alert_deliveries"


def notify(
    db: Session,
    recipient_id: str,
    alert_type: str,
    header: str,
    message: str,
    *,
    asset_id: int | None = None,
    request_id: int | None = None,
) -> models.Alert:
    """Persist an alert and queue its delivery for after the transaction commits."""

    if asset_id is not None and request_id is not None:
        raise ValueError("an alert references an asset or a request, not both")
    if alert_type in ASSET_ALERT_TYPES and request_id is not None:
        raise ValueError(f"{alert_type} alerts reference an asset")
    if alert_type in REQUEST_ALERT_TYPES and asset_id is not None:
        raise ValueError(f"{alert_type} alerts reference a request")

    alert = models.Alert(
        user_id=recipient_id,
        type=alert_type,
        asset_id=asset_id,
        request_id=request_id,
        header=header[:255],
        message=message[:4096],
        read=False,
        delivered=False,
    )
    db.add(alert)
    db.flush()
    db.info.setdefault(_PENDING_DELIVERIES, []).append(alert.id)
    logger.info("alert %s (%s) queued for %s", alert.id, alert_type, recipient_id)
    return alert


@event.listens_for(Session, "after_commit")
def _dispatch_pending_deliveries(session: Session) -> None:
    pending = session.info.pop(_PENDING_DELIVERIES, None)
    for alert_id in pending or []:
        try:
            tasks.enqueue_alert_delivery(alert_id)
        except Exception as exc:
            # the transaction is already committed; the alert stays undelivered
            logger.warning("could not enqueue delivery of alert %s: %s", alert_id, exc)


@event.listens_for(Session, "after_rollback")
def _discard_pending_deliveries(session: Session) -> None:
    session.info.pop(_PENDING_DELIVERIES, None)


def get_alert(db: Session, alert_id: int) -> models.Alert:
    alert = db.get(models.Alert, alert_id)
    if alert is None:
        raise NotFound(f"alert {alert_id} not found")
    return alert


def _ensure_recipient(alert: models.Alert, actor: models.User) -> None:
    if actor is None or alert.user_id != actor.id:
        raise Forbidden("only the recipient may change this alert")


def mark_read(db: Session, alert: models.Alert, actor: models.User) -> models.Alert:
    _ensure_recipient(alert, actor)
    if not alert.read:
        alert.read = True
        alert.updated_at = datetime.now(timezone.utc)
        db.add(alert)
        db.flush()
    return alert


def delete_alert(db: Session, alert: models.Alert, actor: models.User) -> None:
    _ensure_recipient(alert, actor)
    db.delete(alert)
    db.flush()
    logger.debug("alert %s deleted by %s", alert.id, actor.id)


def list_for_user(
    db: Session,
    user_id: str,
    read_filter: ReadFilter = "all",
) -> list[models.Alert]:
    """Return the user's alerts newest first."""

    query = db.query(models.Alert).filter(models.Alert.user_id == user_id)
    if read_filter == "read":
        query = query.filter(models.Alert.read.is_(True))
    elif read_filter == "unread":
        query = query.filter(models.Alert.read.is_(False))
    return query.order_by(models.Alert.created_at.desc(), models.Alert.id.desc()).all()


def mark_all_read(db: Session, user_id: str) -> int:
    alerts = list_for_user(db, user_id, "unread")
    now = datetime.now(timezone.utc)
    for alert in alerts:
        alert.read = True
        alert.updated_at = now
    db.flush()
    return len(alerts)


def unread_count(db: Session, user_id: str) -> int:
    return (
        db.query(models.Alert)
        .filter(models.Alert.user_id == user_id, models.Alert.read.is_(False))
        .count()
    )
