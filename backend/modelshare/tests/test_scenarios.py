import pytest

from modelshare import models
from modelshare.services import assets as asset_service
from modelshare.services import requests as request_service
from modelshare.services.errors import RequestPreviouslyDeclined
from .conftest import alerts_for, create_asset, create_user


def test_submission_and_approval_history(db):
    uploader = create_user()
    moderator = create_user("moderator")
    asset = create_asset(db, uploader)

    asset_service.set_status(db, asset, "pending", "Ready for review", uploader)
    db.commit()
    asset_service.set_status(db, asset, "approved", "Approved", moderator)
    db.commit()

    out = asset_service.asset_to_out(db, asset)
    assert [(e.status, e.user_id) for e in out.status_history] == [
        ("private", uploader),
        ("pending", uploader),
        ("approved", moderator),
    ]
    assert out.status_history[2].reason == "Approved"
    assert [a.type for a in alerts_for(db, uploader)] == ["asset_approved"]


def test_declined_credit_cannot_be_requested_again(db):
    uploader = create_user()
    collaborator = create_user()
    asset = create_asset(db, uploader, status="approved")
    requester = db.get(models.User, uploader)
    target = db.get(models.User, collaborator)

    request = asset_service.request_collab(db, asset, requester, target)
    db.commit()
    request_service.decline(db, request, collaborator)
    db.commit()

    declined = [a for a in alerts_for(db, uploader) if a.type == "request_declined"]
    assert len(declined) == 1
    assert declined[0].request_id == request.id

    with pytest.raises(RequestPreviouslyDeclined):
        asset_service.request_collab(db, asset, requester, target)
    db.expire_all()
    assert db.get(models.Asset, asset.id).collaborators == []
