import pytest
import requests

from modelshare import config, models, notify, tasks
from modelshare.services import alerts as alert_service
from modelshare.services.errors import Forbidden, NotFound
from .conftest import create_asset, create_user


def test_notify_rejects_double_association(db):
    owner = create_user()
    with pytest.raises(ValueError):
        alert_service.notify(db, owner, "asset_removal", "h", "m", asset_id=1, request_id=1)


def test_notify_rejects_mismatched_association(db):
    owner = create_user()
    with pytest.raises(ValueError):
        alert_service.notify(db, owner, "request_declined", "h", "m", asset_id=1)


def test_committed_alert_is_delivered(db):
    owner = create_user()
    asset = create_asset(db, owner)
    alert = alert_service.notify(db, owner, "asset_removal", "Removed", "gone", asset_id=asset.id)
    assert notify.DM_OUTBOX == []

    db.commit()

    assert notify.DM_OUTBOX == [(owner, "Removed", "gone")]
    db.expire_all()
    assert db.get(models.Alert, alert.id).delivered is True


def test_rolled_back_alert_is_never_delivered(db):
    owner = create_user()
    asset = create_asset(db, owner)
    alert_service.notify(db, owner, "asset_removal", "Removed", "gone", asset_id=asset.id)

    db.rollback()
    db.commit()

    assert notify.DM_OUTBOX == []
    assert db.query(models.Alert).filter(models.Alert.user_id == owner).count() == 0


def test_delivery_failure_keeps_alert_undelivered(db, monkeypatch):
    owner = create_user()
    asset = create_asset(db, owner)
    alert = alert_service.notify(db, owner, "asset_removal", "Removed", "gone", asset_id=asset.id)

    def broken(*args, **kwargs):
        raise requests.ConnectionError("chat bot offline")

    monkeypatch.setattr(notify, "send_direct_message", broken)
    db.commit()

    db.expire_all()
    assert db.get(models.Alert, alert.id).delivered is False


def test_webhook_delivery_posts_payload(monkeypatch):
    calls = []

    class FakeResponse:
        def raise_for_status(self):
            return None

    def fake_post(url, json, timeout):
        calls.append((url, json, timeout))
        return FakeResponse()

    monkeypatch.delenv("TESTING", raising=False)
    monkeypatch.setattr(config, "ALERT_WEBHOOK_URL", "https://bot.example.com/dm")
    monkeypatch.setattr(notify.requests, "post", fake_post)

    assert notify.send_direct_message("42", "Header", "Body") is True
    assert calls == [
        (
            "https://bot.example.com/dm",
            {"user_id": "42", "header": "Header", "message": "Body"},
            config.ALERT_WEBHOOK_TIMEOUT,
        )
    ]


def test_missing_webhook_skips_delivery(monkeypatch):
    monkeypatch.delenv("TESTING", raising=False)
    monkeypatch.setattr(config, "ALERT_WEBHOOK_URL", "")
    assert notify.send_direct_message("42", "Header", "Body") is False


def test_deliver_alert_ignores_unknown_alert():
    tasks.deliver_alert(987654321)
    assert notify.DM_OUTBOX == []


def test_list_filters_and_order(db):
    owner = create_user()
    asset = create_asset(db, owner)
    first = alert_service.notify(db, owner, "asset_approved", "one", "1", asset_id=asset.id)
    second = alert_service.notify(db, owner, "asset_rejected", "two", "2", asset_id=asset.id)
    db.commit()

    assert [a.id for a in alert_service.list_for_user(db, owner)] == [second.id, first.id]

    alert_service.mark_read(db, first, db.get(models.User, owner))
    db.commit()
    assert [a.id for a in alert_service.list_for_user(db, owner, "read")] == [first.id]
    assert [a.id for a in alert_service.list_for_user(db, owner, "unread")] == [second.id]
    assert alert_service.unread_count(db, owner) == 1

    assert alert_service.mark_all_read(db, owner) == 1
    db.commit()
    assert alert_service.unread_count(db, owner) == 0


def test_only_recipient_may_touch_alert(db):
    owner = create_user()
    other = create_user()
    asset = create_asset(db, owner)
    alert = alert_service.notify(db, owner, "asset_approved", "h", "m", asset_id=asset.id)
    db.commit()
    alert_id = alert.id
    intruder = db.get(models.User, other)

    with pytest.raises(Forbidden):
        alert_service.mark_read(db, alert, intruder)
    with pytest.raises(Forbidden):
        alert_service.delete_alert(db, alert, intruder)

    recipient = db.get(models.User, owner)
    alert_service.mark_read(db, alert, recipient)
    alert_service.mark_read(db, alert, recipient)
    alert_service.delete_alert(db, alert, recipient)
    db.commit()

    with pytest.raises(NotFound):
        alert_service.get_alert(db, alert_id)


def test_empty_inbox_is_valid(db):
    assert alert_service.list_for_user(db, create_user()) == []
