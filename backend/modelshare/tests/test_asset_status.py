from datetime import datetime, timezone

import pytest

from modelshare import models, schemas
from modelshare.services import assets as asset_service
from modelshare.services.errors import (
    ConflictOnWrite,
    InvalidTransition,
    ValidationFailure,
)
from .conftest import alerts_for, asset_payload, create_asset, create_user


@pytest.mark.parametrize(
    "start,target",
    [
        ("pending", "private"),
        ("approved", "pending"),
        ("approved", "private"),
        ("rejected", "approved"),
        ("rejected", "pending"),
        ("rejected", "private"),
    ],
)
def test_illegal_transitions_leave_asset_unchanged(db, start, target):
    owner = create_user()
    mod = create_user("moderator")
    asset = create_asset(db, owner, status=start)
    history_before = len(asset.status_events)

    with pytest.raises(InvalidTransition):
        asset_service.set_status(db, asset, target, "nope", mod)

    assert asset.status == start
    assert len(asset.status_events) == history_before

    db.rollback()
    db.expire_all()
    stored = db.get(models.Asset, asset.id)
    assert stored.status == start
    assert len(stored.status_events) == history_before


def test_history_counts_successful_writes_including_confirmations(db):
    owner = create_user()
    mod = create_user("moderator")
    asset = create_asset(db, owner)

    asset_service.set_status(db, asset, "pending", "submit", owner)
    asset_service.set_status(db, asset, "pending", "still pending", mod)
    with pytest.raises(InvalidTransition):
        asset_service.set_status(db, asset, "private", "back", mod)
    asset_service.set_status(db, asset, "approved", "looks good", mod)
    db.commit()

    db.expire_all()
    reloaded = db.get(models.Asset, asset.id)
    assert [e.status for e in reloaded.status_events] == [
        "private",
        "pending",
        "pending",
        "approved",
    ]
    assert [e.sequence for e in reloaded.status_events] == [1, 2, 3, 4]


def test_same_status_write_sends_no_alert(db):
    owner = create_user()
    mod = create_user("moderator")
    asset = create_asset(db, owner, status="approved")

    asset_service.set_status(db, asset, "approved", "confirmed", mod)
    db.commit()

    assert alerts_for(db, owner) == []


def test_approval_alerts_uploader(db):
    owner = create_user()
    mod = create_user("moderator")
    asset = create_asset(db, owner, status="pending")

    asset_service.set_status(db, asset, "approved", "Great work", mod)
    db.commit()

    alerts = alerts_for(db, owner)
    assert [a.type for a in alerts] == ["asset_approved"]
    assert alerts[0].asset_id == asset.id
    assert alerts[0].request_id is None
    assert "Great work" in alerts[0].message


def test_rejected_is_terminal_without_override(db):
    owner = create_user()
    admin = create_user("admin")
    asset = create_asset(db, owner, status="rejected")

    with pytest.raises(InvalidTransition):
        asset_service.set_status(db, asset, "approved", "appeal", admin)

    asset_service.set_status(db, asset, "approved", "appeal upheld", admin, override=True)
    db.commit()
    assert asset.status == "approved"
    assert asset.status_events[-1].actor_id == admin


def test_blank_reason_is_rejected(db):
    owner = create_user()
    asset = create_asset(db, owner)
    with pytest.raises(ValidationFailure):
        asset_service.set_status(db, asset, "pending", "   ", owner)
    assert asset.status == "private"


def test_unknown_status_is_rejected(db):
    owner = create_user()
    asset = create_asset(db, owner)
    with pytest.raises(ValidationFailure):
        asset_service.set_status(db, asset, "archived", "why not", owner)


def test_create_asset_validates_license_pairing(db):
    owner = db.get(models.User, create_user())
    with pytest.raises(ValidationFailure):
        asset_service.create_asset(
            db,
            schemas.AssetCreate(**asset_payload(license="custom")),
            uploader=owner,
        )
    with pytest.raises(ValidationFailure):
        asset_service.create_asset(
            db,
            schemas.AssetCreate(**asset_payload(license="mit", license_url="https://example.com/l")),
            uploader=owner,
        )
    asset = asset_service.create_asset(
        db,
        schemas.AssetCreate(**asset_payload(license="custom", license_url="https://example.com/l")),
        uploader=owner,
    )
    assert asset.license_url == "https://example.com/l"


def test_create_asset_rejects_duplicate_hash(db):
    owner = create_user()
    asset = create_asset(db, owner)
    uploader = db.get(models.User, owner)
    with pytest.raises(ConflictOnWrite):
        asset_service.create_asset(
            db,
            schemas.AssetCreate(**asset_payload(file_hash=asset.file_hash)),
            uploader=uploader,
        )


def test_update_asset_leaves_absent_fields(db):
    owner = create_user()
    asset = create_asset(db, owner, tags=["meme", "fbt"])

    asset_service.update_asset(db, asset, schemas.AssetUpdate(name="Renamed"))
    db.commit()

    assert asset.name == "Renamed"
    assert asset.description == "A glowing saber"
    assert asset.tags == ["meme", "fbt"]


def test_list_assets_respects_visibility_and_filters(db):
    owner = create_user()
    stranger = db.get(models.User, create_user())
    private = create_asset(db, owner, tags=["holiday"])
    approved = create_asset(db, owner, status="approved", tags=["holiday", "meme"])
    create_asset(db, owner, status="approved", tags=["meme"])

    visible, total = asset_service.list_assets(db, stranger, uploader_id=owner)
    ids = {a.id for a in visible}
    assert private.id not in ids
    assert approved.id in ids
    assert total == 2

    tagged, _ = asset_service.list_assets(db, stranger, uploader_id=owner, tags=["holiday"])
    assert [a.id for a in tagged] == [approved.id]

    hidden, total = asset_service.list_assets(db, stranger, uploader_id=owner, status="private")
    assert hidden == [] and total == 0

    own, total = asset_service.list_assets(db, db.get(models.User, owner), uploader_id=owner)
    assert total == 3

    with pytest.raises(ValidationFailure):
        asset_service.list_assets(db, stranger, page=1)


def test_asset_projection_has_placeholder_for_missing_uploader(db):
    owner = create_user()
    asset = create_asset(db, owner)
    user = db.get(models.User, owner)
    user.deleted_at = datetime.now(timezone.utc)
    db.commit()

    out = asset_service.asset_to_out(db, asset)
    assert out.uploader.id == owner
    assert out.uploader.username == "Unknown User"
    assert [entry.status for entry in out.status_history] == ["private"]
    assert out.icons == ["icon-1.png"]
