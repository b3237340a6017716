import logging

import requests
from celery import Celery

from .config import CELERY_BROKER_URL, TESTING
from .database import SessionLocal
from . import models, notify

logger = logging.getLogger(__name__)

celery_app = Celery("tasks", broker=CELERY_BROKER_URL)
celery_app.conf.task_always_eager = CELERY_BROKER_URL == "memory://" or TESTING


@celery_app.task
def deliver_alert(alert_id: int):
    db = SessionLocal()
    try:
        alert = db.get(models.Alert, alert_id)
        if alert is None or alert.delivered:
            return
        try:
            sent = notify.send_direct_message(alert.user_id, alert.header, alert.message)
        except requests.RequestException as exc:
            # delivery is best effort; the in-app alert is already persisted
            logger.warning("alert %s delivery to %s failed: %s", alert_id, alert.user_id, exc)
            return
        if sent:
            alert.delivered = True
            db.commit()
            logger.debug("alert %s delivered to %s", alert_id, alert.user_id)
    finally:
        db.close()


def enqueue_alert_delivery(alert_id: int):
    if celery_app.conf.task_always_eager:
        deliver_alert(alert_id)
    else:
        deliver_alert.delay(alert_id)
