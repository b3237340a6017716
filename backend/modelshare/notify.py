import logging
import os

import requests

from . import config

logger = logging.getLogger(__name__)

DM_OUTBOX: list[tuple[str, str, str]] = []


def send_direct_message(user_id: str, header: str, message: str) -> bool:
    """Push an alert to the recipient's chat inbox through the bot webhook.

    Returns False when no webhook is configured so the alert stays undelivered.
    """

    if os.getenv("TESTING") == "1":
        DM_OUTBOX.append((user_id, header, message))
        return True
    if not config.ALERT_WEBHOOK_URL:
        logger.debug("no alert webhook configured, skipping delivery to %s", user_id)
        return False
    response = requests.post(
        config.ALERT_WEBHOOK_URL,
        json={"user_id": user_id, "header": header, "message": message},
        timeout=config.ALERT_WEBHOOK_TIMEOUT,
    )
    response.raise_for_status()
    return True
