import pytest

from modelshare import models
from modelshare.services import assets as asset_service
from modelshare.services import requests as request_service
from modelshare.services.errors import (
    DuplicateRequest,
    Forbidden,
    InvalidTransition,
    RequestPreviouslyDeclined,
    SelfReference,
    ValidationFailure,
)
from .conftest import alerts_for, create_asset, create_user


def _credit(db, owner_id, collaborator_id):
    asset = create_asset(db, owner_id)
    request = asset_service.request_collab(
        db,
        asset,
        db.get(models.User, owner_id),
        db.get(models.User, collaborator_id),
    )
    db.commit()
    return asset, request


def test_credit_request_notifies_collaborator(db):
    owner = create_user()
    collaborator = create_user()
    asset, request = _credit(db, owner, collaborator)

    assert request.request_type == "credit"
    assert request.responder_id == collaborator
    assert request.accepted is None
    alerts = alerts_for(db, collaborator)
    assert [a.type for a in alerts] == ["request_received"]
    assert alerts[0].request_id == request.id


def test_pending_credit_blocks_duplicate(db):
    owner = create_user()
    collaborator = create_user()
    asset, _ = _credit(db, owner, collaborator)

    with pytest.raises(DuplicateRequest):
        asset_service.request_collab(
            db, asset, db.get(models.User, owner), db.get(models.User, collaborator)
        )


def test_credit_accept_adds_collaborator_once(db):
    owner = create_user()
    collaborator = create_user()
    asset, request = _credit(db, owner, collaborator)

    request_service.accept(db, request, collaborator)
    db.commit()

    db.expire_all()
    assert db.get(models.Asset, asset.id).collaborators == [collaborator]
    assert request.accepted is True
    assert request.resolved_by == collaborator
    assert [a.type for a in alerts_for(db, owner)] == ["request_accepted"]

    with pytest.raises(InvalidTransition):
        request_service.accept(db, request, collaborator)
    with pytest.raises(ValidationFailure):
        asset_service.request_collab(
            db, asset, db.get(models.User, owner), db.get(models.User, collaborator)
        )


def test_credit_decline_then_rerequest_fails(db):
    owner = create_user()
    collaborator = create_user()
    asset, request = _credit(db, owner, collaborator)

    request_service.decline(db, request, collaborator)
    db.commit()

    owner_alerts = alerts_for(db, owner)
    assert [a.type for a in owner_alerts] == ["request_declined"]
    assert owner_alerts[0].request_id == request.id

    with pytest.raises(RequestPreviouslyDeclined):
        asset_service.request_collab(
            db, asset, db.get(models.User, owner), db.get(models.User, collaborator)
        )
    with pytest.raises(InvalidTransition):
        request_service.decline(db, request, collaborator)


def test_credit_for_uploader_is_rejected(db):
    owner = create_user()
    asset = create_asset(db, owner)
    uploader = db.get(models.User, owner)
    with pytest.raises(ValidationFailure):
        asset_service.request_collab(db, asset, uploader, uploader)


def test_link_accept_writes_both_directions(db):
    requester = create_user()
    other_owner = create_user()
    a = create_asset(db, requester)
    b = create_asset(db, other_owner, status="approved")
    request = asset_service.request_link(db, a, db.get(models.User, requester), b, "older")
    db.commit()

    request_service.accept(db, request, other_owner)
    db.commit()

    db.expire_all()
    assert [(l.linked_asset_id, l.link_type) for l in db.get(models.Asset, a.id).links] == [(b.id, "older")]
    assert [(l.linked_asset_id, l.link_type) for l in db.get(models.Asset, b.id).links] == [(a.id, "newer")]


def test_self_report_rejected(db):
    owner = create_user()
    asset = create_asset(db, owner, status="approved")
    with pytest.raises(SelfReference):
        asset_service.report(db, asset, db.get(models.User, owner), "mine")


def test_report_exclusive_until_resolved(db):
    owner = create_user()
    first = create_user()
    second = create_user()
    mod = create_user("moderator")
    asset = create_asset(db, owner, status="approved")

    report = asset_service.report(db, asset, db.get(models.User, first), "stolen model")
    db.commit()
    assert report.responder_id is None
    assert report.payload == {}
    assert report.messages[0]["message"] == "stolen model"
    assert report.messages[0]["user_id"] == first

    with pytest.raises(DuplicateRequest):
        asset_service.report(db, asset, db.get(models.User, second), "also stolen")

    request_service.decline(db, report, mod)
    db.commit()

    refiled = asset_service.report(db, asset, db.get(models.User, second), "still stolen")
    db.commit()
    assert refiled.id != report.id


def test_report_accept_rejects_asset_and_sends_two_alerts(db):
    owner = create_user()
    reporter = create_user()
    mod = create_user("moderator")
    asset = create_asset(db, owner, status="approved")
    report = asset_service.report(db, asset, db.get(models.User, reporter), "offensive")
    db.commit()
    alerts_before = db.query(models.Alert).count()

    request_service.accept(db, report, mod)
    db.commit()

    db.expire_all()
    reloaded = db.get(models.Asset, asset.id)
    assert reloaded.status == "rejected"
    assert reloaded.status_events[-1].reason == f"Report #{report.id} accepted."
    assert reloaded.status_events[-1].actor_id == mod
    assert db.query(models.Alert).count() - alerts_before == 2
    assert [a.type for a in alerts_for(db, owner)] == ["asset_removal"]
    assert [a.type for a in alerts_for(db, reporter)] == ["request_accepted"]


def test_report_decline_sends_one_alert_and_keeps_asset(db):
    owner = create_user()
    reporter = create_user()
    mod = create_user("moderator")
    asset = create_asset(db, owner, status="approved")
    report = asset_service.report(db, asset, db.get(models.User, reporter), "meh")
    db.commit()
    alerts_before = db.query(models.Alert).count()

    request_service.decline(db, report, mod)
    db.commit()

    assert db.query(models.Alert).count() - alerts_before == 1
    assert [a.type for a in alerts_for(db, reporter)] == ["request_declined"]
    db.expire_all()
    assert db.get(models.Asset, asset.id).status == "approved"


def test_silent_accept_sends_nothing(db):
    owner = create_user()
    collaborator = create_user()
    asset, request = _credit(db, owner, collaborator)
    alerts_before = db.query(models.Alert).count()

    request_service.accept(db, request, collaborator, silent=True)
    db.commit()

    assert db.query(models.Alert).count() == alerts_before


def test_report_thread_messages(db):
    owner = create_user()
    reporter = create_user()
    mod = create_user("moderator")
    stranger = create_user()
    asset = create_asset(db, owner, status="approved")
    report = asset_service.report(db, asset, db.get(models.User, reporter), "first")
    db.commit()

    request_service.add_message(db, report, db.get(models.User, mod), "looking into it")
    db.commit()
    assert [m["message"] for m in report.messages] == ["first", "looking into it"]
    assert [a.type for a in alerts_for(db, reporter)] == ["request_message"]

    with pytest.raises(Forbidden):
        request_service.add_message(db, report, db.get(models.User, stranger), "hi")


def test_messages_forbidden_on_credit_requests(db):
    owner = create_user()
    collaborator = create_user()
    _, request = _credit(db, owner, collaborator)
    with pytest.raises(Forbidden):
        request_service.add_message(db, request, db.get(models.User, owner), "please")


def test_list_requests_splits_incoming_outgoing_and_reports(db):
    owner = create_user()
    collaborator = create_user()
    mod = db.get(models.User, create_user("moderator"))
    asset, request = _credit(db, owner, collaborator)

    incoming, outgoing, reports = request_service.list_requests(db, db.get(models.User, collaborator))
    assert [r.id for r in incoming] == [request.id]
    assert outgoing == []
    assert reports is None

    _, outgoing, _ = request_service.list_requests(db, db.get(models.User, owner))
    assert [r.id for r in outgoing] == [request.id]

    _, _, reports = request_service.list_requests(db, mod, asset_id=asset.id)
    assert reports == []

    out = request_service.request_to_out(request)
    assert out.payload.kind == "credit"
    assert out.payload.user_id == collaborator


def test_removing_asset_declines_its_open_requests_silently(db):
    owner = create_user()
    collaborator = create_user()
    mod = create_user("moderator")
    asset, request = _credit(db, owner, collaborator)

    asset_service.remove_asset(db, asset, db.get(models.User, mod), "gone")
    db.commit()

    db.expire_all()
    assert request.accepted is False
    assert request.resolved_by == mod
    assert [a.type for a in alerts_for(db, collaborator)] == ["request_received"]
    assert [a.type for a in alerts_for(db, owner)] == ["asset_removal"]
    with pytest.raises(InvalidTransition):
        request_service.accept(db, request, collaborator)


def test_removing_link_target_declines_pending_link_request(db):
    requester = create_user()
    other_owner = create_user()
    a = create_asset(db, requester)
    b = create_asset(db, other_owner, status="approved")
    request = asset_service.request_link(db, a, db.get(models.User, requester), b, "older")
    db.commit()

    asset_service.remove_asset(db, b, db.get(models.User, other_owner), "withdrawn")
    db.commit()

    db.expire_all()
    assert request.accepted is False
    assert request.resolved_by == other_owner
    assert alerts_for(db, requester) == []
    assert db.get(models.Asset, a.id).deleted_at is None
