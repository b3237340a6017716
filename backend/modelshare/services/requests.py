"""Resolution of credit, link and report requests."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from .. import models, rbac, schemas
from . import alerts, assets
from .errors import Forbidden, InvalidTransition, NotFound, ValidationFailure

# purpose: consent protocol; a request resolves exactly once and then applies its payload
# status: active
# depends_on: backend.modelshare.services.assets

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def request_payload(
    request: models.AssetRequest,
) -> schemas.CreditPayload | schemas.LinkPayload | schemas.ReportPayload:
    """Decode the stored payload into the variant matching the request type."""

    data = dict(request.payload or {})
    data["kind"] = request.request_type
    return schemas.REQUEST_PAYLOAD_ADAPTER.validate_python(data)


def get_request(db: Session, request_id: int) -> models.AssetRequest:
    request = db.get(models.AssetRequest, request_id)
    if request is None or request.deleted_at is not None:
        raise NotFound(f"request {request_id} not found")
    return request


def _ensure_open(request: models.AssetRequest) -> None:
    if not request.is_open:
        outcome = "accepted" if request.accepted else "declined"
        raise InvalidTransition(f"request {request.id} was already {outcome}")


def _resolve(request: models.AssetRequest, resolver_id: str, accepted: bool) -> None:
    request.accepted = accepted
    request.resolved_by = resolver_id
    request.updated_at = _utcnow()


def accept(
    db: Session,
    request: models.AssetRequest,
    resolver_id: str,
    *,
    silent: bool = False,
) -> models.AssetRequest:
    """Apply the request's payload to its asset and mark it accepted."""

    _ensure_open(request)
    payload = request_payload(request)
    asset = assets.get_asset(db, request.asset_id, for_update=True)

    if isinstance(payload, schemas.CreditPayload):
        collaborators = list(asset.collaborators or [])
        if payload.user_id not in collaborators and payload.user_id != asset.uploader_id:
            collaborators.append(payload.user_id)
            asset.collaborators = collaborators
            asset.updated_at = _utcnow()
    elif isinstance(payload, schemas.LinkPayload):
        other = assets.get_asset(db, payload.asset_id, for_update=True)
        assets.add_link(db, asset, other, payload.link_type)
    else:
        assets.set_status(
            db,
            asset,
            "rejected",
            f"Report #{request.id} accepted.",
            resolver_id,
            override=True,
            notify_uploader=False,
        )

    _resolve(request, resolver_id, True)
    db.flush()
    logger.info("%s request %s accepted by %s", request.request_type, request.id, resolver_id)

    if silent:
        return request
    if isinstance(payload, schemas.ReportPayload):
        alerts.notify(
            db,
            asset.uploader_id,
            "asset_removal",
            "Asset removed",
            f'Your asset "{asset.name}" was removed after a report was upheld.',
            asset_id=asset.id,
        )
        header = "Report accepted"
        message = f'Your report on "{asset.name}" was accepted. Thank you.'
    else:
        header = f"{request.request_type.capitalize()} request accepted"
        message = f'Your {request.request_type} request for "{asset.name}" was accepted.'
    alerts.notify(
        db,
        request.requester_id,
        "request_accepted",
        header,
        message,
        request_id=request.id,
    )
    return request


def decline(
    db: Session,
    request: models.AssetRequest,
    resolver_id: str,
    *,
    silent: bool = False,
) -> models.AssetRequest:
    _ensure_open(request)
    _resolve(request, resolver_id, False)
    db.flush()
    logger.info("%s request %s declined by %s", request.request_type, request.id, resolver_id)
    if not silent:
        alerts.notify(
            db,
            request.requester_id,
            "request_declined",
            f"{request.request_type.capitalize()} request declined",
            f"Your {request.request_type} request #{request.id} was declined.",
            request_id=request.id,
        )
    return request


def add_message(
    db: Session,
    request: models.AssetRequest,
    user: models.User,
    text: str,
) -> models.AssetRequest:
    """Append a message to a report thread."""

    if not rbac.can_message_request(request, user):
        raise Forbidden("you cannot post to this request")
    text = (text or "").strip()
    if not text:
        raise ValidationFailure("message must not be empty")
    now = _utcnow()
    request.messages = [
        *(request.messages or []),
        {"user_id": user.id, "message": text, "timestamp": now.isoformat()},
    ]
    request.updated_at = now
    db.add(request)
    db.flush()
    if user.id != request.requester_id:
        alerts.notify(
            db,
            request.requester_id,
            "request_message",
            "New reply on your report",
            text,
            request_id=request.id,
        )
    return request


def _base_query(db: Session, *, include_actioned: bool, asset_id: int | None):
    query = db.query(models.AssetRequest).filter(models.AssetRequest.deleted_at.is_(None))
    if not include_actioned:
        query = query.filter(models.AssetRequest.accepted.is_(None))
    if asset_id is not None:
        query = query.filter(models.AssetRequest.asset_id == asset_id)
    return query


def list_requests(
    db: Session,
    user: models.User,
    *,
    include_actioned: bool = False,
    asset_id: int | None = None,
) -> tuple[list[models.AssetRequest], list[models.AssetRequest], list[models.AssetRequest] | None]:
    """Return (incoming, outgoing, reports); reports is None for non-moderators."""

    order = (models.AssetRequest.created_at.desc(), models.AssetRequest.id.desc())
    incoming = (
        _base_query(db, include_actioned=include_actioned, asset_id=asset_id)
        .filter(models.AssetRequest.responder_id == user.id)
        .order_by(*order)
        .all()
    )
    outgoing = (
        _base_query(db, include_actioned=include_actioned, asset_id=asset_id)
        .filter(models.AssetRequest.requester_id == user.id)
        .order_by(*order)
        .all()
    )
    reports = None
    if rbac.is_elevated(user):
        reports = (
            _base_query(db, include_actioned=include_actioned, asset_id=asset_id)
            .filter(models.AssetRequest.request_type == "report")
            .order_by(*order)
            .all()
        )
    return incoming, outgoing, reports


def request_counts(db: Session, user: models.User) -> schemas.RequestCountsOut:
    incoming, outgoing, reports = list_requests(db, user)
    return schemas.RequestCountsOut(
        incoming=len(incoming),
        outgoing=len(outgoing),
        reports=len(reports) if reports is not None else None,
    )


def request_to_out(request: models.AssetRequest) -> schemas.AssetRequestOut:
    return schemas.AssetRequestOut(
        id=request.id,
        asset_id=request.asset_id,
        requester_id=request.requester_id,
        responder_id=request.responder_id,
        request_type=request.request_type,
        payload=request_payload(request),
        messages=[schemas.RequestMessage(**message) for message in request.messages or []],
        accepted=request.accepted,
        resolved_by=request.resolved_by,
        created_at=request.created_at,
        updated_at=request.updated_at,
    )
