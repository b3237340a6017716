"""Asset lifecycle services: review state machine, link graph and consent requests."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, Sequence, get_args

import sqlalchemy as sa
from sqlalchemy.orm import Session

from .. import models, rbac, schemas
from ..eventlog import record_status_event, status_history
from . import alerts, users
from .errors import (
    ConflictOnWrite,
    DuplicateLink,
    DuplicateRequest,
    Forbidden,
    InvalidTransition,
    NotFound,
    RequestPreviouslyDeclined,
    SelfReference,
    ValidationFailure,
)

# purpose: own every mutation of an asset's status, links and credits
# status: active
# depends_on: backend.modelshare.models.Asset, backend.modelshare.models.AssetRequest
# invariant: callers commit; these functions only add and flush

logger = logging.getLogger(__name__)

STATUSES = frozenset(get_args(schemas.AssetStatus))
LICENSES = frozenset(get_args(schemas.License))
TAGS = frozenset(get_args(schemas.Tag))

# rejected is terminal; only an admin override leaves it
ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "private": frozenset({"pending", "approved", "rejected"}),
    "pending": frozenset({"approved", "rejected"}),
    "approved": frozenset({"rejected"}),
    "rejected": frozenset(),
}

MIRRORED_LINK_TYPES = {
    "older": "newer",
    "newer": "older",
    "altformat": "altformat",
    "alternate": "alternate",
}

_STATUS_ALERTS = {
    "approved": ("asset_approved", "Asset approved"),
    "rejected": ("asset_rejected", "Asset rejected"),
}

MAX_MULTI_FETCH = 50
MAX_DESCRIPTION_LENGTH = 4096


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_transition_allowed(current: str, new_status: str) -> bool:
    return current == new_status or new_status in ALLOWED_TRANSITIONS.get(current, frozenset())


def _validate_name(name: str) -> str:
    name = (name or "").strip()
    if not 1 <= len(name) <= 64:
        raise ValidationFailure("asset name must be between 1 and 64 characters")
    return name


def _validate_description(description: str) -> str:
    if len(description or "") > MAX_DESCRIPTION_LENGTH:
        raise ValidationFailure("asset description is too long")
    return description or ""


def _validate_license(license: str, license_url: str | None) -> None:
    if license not in LICENSES:
        raise ValidationFailure(f"unknown license {license}")
    if license == "custom" and not license_url:
        raise ValidationFailure("a custom license requires a license URL")
    if license != "custom" and license_url:
        raise ValidationFailure("a license URL is only allowed with a custom license")


def _validate_tags(tags: Iterable[str]) -> list[str]:
    normalized = list(dict.fromkeys(tags))
    if len(normalized) > schemas.MAX_TAGS:
        raise ValidationFailure(f"an asset may carry at most {schemas.MAX_TAGS} tags")
    unknown = [tag for tag in normalized if tag not in TAGS]
    if unknown:
        raise ValidationFailure(f"unknown tags: {', '.join(unknown)}")
    return normalized


def create_asset(
    db: Session,
    payload: schemas.AssetCreate,
    *,
    uploader: models.User,
) -> models.Asset:
    """Record an uploaded file's metadata as a new private asset."""

    name = _validate_name(payload.name)
    description = _validate_description(payload.description)
    _validate_license(payload.license, payload.license_url)
    tags = _validate_tags(payload.tags)
    if payload.file_size <= 0:
        raise ValidationFailure("file size must be positive")

    duplicate = (
        db.query(models.Asset.id)
        .filter(models.Asset.file_hash == payload.file_hash)
        .first()
    )
    if duplicate is not None:
        raise ConflictOnWrite(f"an asset with hash {payload.file_hash} already exists")
    if payload.legacy_id is not None:
        legacy = (
            db.query(models.Asset.id)
            .filter(models.Asset.legacy_id == payload.legacy_id)
            .first()
        )
        if legacy is not None:
            raise ConflictOnWrite(f"legacy id {payload.legacy_id} is already in use")

    now = _utcnow()
    asset = models.Asset(
        legacy_id=payload.legacy_id,
        file_format=payload.file_format,
        uploader_id=uploader.id,
        collaborators=[],
        name=name,
        description=description,
        license=payload.license,
        license_url=payload.license_url,
        source_url=payload.source_url,
        file_hash=payload.file_hash,
        file_size=payload.file_size,
        icon_names=list(payload.icon_names),
        status="private",
        tags=tags,
        created_at=now,
        updated_at=now,
    )
    db.add(asset)
    db.flush()
    record_status_event(db, asset, "private", "Uploaded.", uploader.id)
    db.flush()
    logger.info("asset %s created by %s", asset.id, uploader.id)
    return asset


def get_asset(
    db: Session,
    asset_id: int,
    *,
    actor: models.User | None = None,
    enforce_visibility: bool = False,
    for_update: bool = False,
) -> models.Asset:
    """Load a live asset, optionally locking the row for a status or link write."""

    query = db.query(models.Asset).filter(
        models.Asset.id == asset_id,
        models.Asset.deleted_at.is_(None),
    )
    if for_update:
        query = query.with_for_update()
    asset = query.first()
    if asset is None:
        raise NotFound(f"asset {asset_id} not found")
    if enforce_visibility and not rbac.can_view(asset, actor):
        raise Forbidden("you are not allowed to view this asset")
    return asset


def list_assets(
    db: Session,
    actor: models.User | None,
    *,
    status: str | None = None,
    tags: Sequence[str] | None = None,
    file_format: str | None = None,
    uploader_id: str | None = None,
    page: int | None = None,
    limit: int | None = None,
) -> tuple[list[models.Asset], int]:
    """Return visible assets newest first plus the total before paging."""

    if (page is None) != (limit is None):
        raise ValidationFailure("page and limit must be given together")
    if page is not None and (page < 1 or limit < 1):
        raise ValidationFailure("page and limit must be positive")

    allowed = rbac.allowed_view_statuses(actor)
    if actor is not None and uploader_id == actor.id:
        allowed = set(rbac.ALL_STATUSES)
    if status is not None:
        if status not in allowed:
            return [], 0
        allowed = {status}

    query = db.query(models.Asset).filter(
        models.Asset.deleted_at.is_(None),
        models.Asset.status.in_(sorted(allowed)),
    )
    if file_format:
        query = query.filter(models.Asset.file_format == file_format)
    if uploader_id:
        query = query.filter(models.Asset.uploader_id == uploader_id)
    assets = query.order_by(models.Asset.created_at.desc(), models.Asset.id.desc()).all()

    if tags:
        # JSON containment differs per dialect, filter in Python
        wanted = set(tags)
        assets = [asset for asset in assets if wanted.issubset(asset.tags or [])]
    total = len(assets)
    if page is not None:
        start = (page - 1) * limit
        assets = assets[start : start + limit]
    return assets, total


def get_assets_by_ids(
    db: Session,
    asset_ids: Sequence[int],
    actor: models.User | None,
) -> list[models.Asset]:
    if len(asset_ids) > MAX_MULTI_FETCH:
        raise ValidationFailure(f"at most {MAX_MULTI_FETCH} ids per lookup")
    if not asset_ids:
        return []
    assets = (
        db.query(models.Asset)
        .filter(models.Asset.id.in_(list(asset_ids)), models.Asset.deleted_at.is_(None))
        .order_by(models.Asset.id.asc())
        .all()
    )
    return [asset for asset in assets if rbac.can_view(asset, actor)]


def update_asset(
    db: Session,
    asset: models.Asset,
    patch: schemas.AssetUpdate,
) -> models.Asset:
    """Apply a partial metadata update; absent fields are left untouched."""

    changes = patch.model_dump(exclude_unset=True)
    if changes.get("name") is not None:
        asset.name = _validate_name(changes["name"])
    if changes.get("description") is not None:
        asset.description = _validate_description(changes["description"])
    if changes.get("tags") is not None:
        asset.tags = _validate_tags(changes["tags"])
    asset.updated_at = _utcnow()
    db.add(asset)
    db.flush()
    return asset


def set_status(
    db: Session,
    asset: models.Asset,
    new_status: str,
    reason: str,
    acting_user_id: str | None,
    *,
    override: bool = False,
    notify_uploader: bool = True,
) -> models.Asset:
    """Move an asset through the review table and append one history entry.

    Writing the current status again is a confirmation: it is recorded in the
    history but changes nothing else. ``override`` skips the table and is meant
    for admin corrections and report resolution.
    """

    if new_status not in STATUSES:
        raise ValidationFailure(f"unknown status {new_status}")
    if not reason or not reason.strip():
        raise ValidationFailure("a reason is required for status changes")

    current = asset.status
    if not override and not is_transition_allowed(current, new_status):
        logger.warning(
            "rejected transition %s -> %s on asset %s by %s",
            current,
            new_status,
            asset.id,
            acting_user_id,
        )
        raise InvalidTransition(f"asset {asset.id} cannot move from {current} to {new_status}")

    record_status_event(db, asset, new_status, reason.strip(), acting_user_id)
    asset.updated_at = _utcnow()
    if current == new_status:
        db.flush()
        return asset

    asset.status = new_status
    db.flush()
    logger.info("asset %s moved %s -> %s by %s", asset.id, current, new_status, acting_user_id)

    if notify_uploader and acting_user_id != asset.uploader_id and new_status in _STATUS_ALERTS:
        alert_type, header = _STATUS_ALERTS[new_status]
        alerts.notify(
            db,
            asset.uploader_id,
            alert_type,
            header,
            f'Your asset "{asset.name}" was {new_status}. Reason: {reason.strip()}',
            asset_id=asset.id,
        )
    return asset


def _open_requests_touching(db: Session, asset: models.Asset) -> list[models.AssetRequest]:
    open_requests = (
        db.query(models.AssetRequest)
        .filter(
            models.AssetRequest.accepted.is_(None),
            models.AssetRequest.deleted_at.is_(None),
        )
    )
    on_asset = open_requests.filter(models.AssetRequest.asset_id == asset.id).all()
    # link targets live in the JSON payload
    targeting = [
        request
        for request in open_requests.filter(
            models.AssetRequest.request_type == "link",
            models.AssetRequest.asset_id != asset.id,
        ).all()
        if (request.payload or {}).get("asset_id") == asset.id
    ]
    return on_asset + targeting


def remove_asset(
    db: Session,
    asset: models.Asset,
    actor: models.User,
    reason: str,
) -> models.Asset:
    """Soft-delete an asset, telling the uploader when someone else removed it.

    Open requests on the asset, and link requests pointing at it, are declined
    without alerting anyone since they can no longer be accepted.
    """

    now = _utcnow()
    asset.deleted_at = now
    asset.updated_at = now
    db.add(asset)
    for request in _open_requests_touching(db, asset):
        request.accepted = False
        request.resolved_by = actor.id
        request.updated_at = now
    db.flush()
    logger.info("asset %s removed by %s", asset.id, actor.id)
    if actor.id != asset.uploader_id:
        alerts.notify(
            db,
            asset.uploader_id,
            "asset_removal",
            "Asset removed",
            f'Your asset "{asset.name}" was removed. Reason: {reason}',
            asset_id=asset.id,
        )
    return asset


def _are_linked(db: Session, asset: models.Asset, other: models.Asset) -> bool:
    if any(link.linked_asset_id == other.id for link in asset.links):
        return True
    if any(link.linked_asset_id == asset.id for link in other.links):
        return True
    existing = (
        db.query(models.AssetLink.id)
        .filter(
            sa.or_(
                sa.and_(
                    models.AssetLink.asset_id == asset.id,
                    models.AssetLink.linked_asset_id == other.id,
                ),
                sa.and_(
                    models.AssetLink.asset_id == other.id,
                    models.AssetLink.linked_asset_id == asset.id,
                ),
            )
        )
        .first()
    )
    return existing is not None


def _check_linkable(db: Session, asset: models.Asset, other: models.Asset, link_type: str) -> None:
    if asset.id == other.id:
        raise SelfReference("an asset cannot be linked to itself")
    if link_type not in MIRRORED_LINK_TYPES:
        raise ValidationFailure(f"unknown link type {link_type}")
    if _are_linked(db, asset, other):
        raise DuplicateLink(f"assets {asset.id} and {other.id} are already linked")


def add_link(
    db: Session,
    asset: models.Asset,
    other: models.Asset,
    link_type: str,
) -> models.Asset:
    """Write both directions of a link in the current transaction."""

    _check_linkable(db, asset, other, link_type)
    asset.links.append(
        models.AssetLink(asset_id=asset.id, linked_asset_id=other.id, link_type=link_type)
    )
    other.links.append(
        models.AssetLink(
            asset_id=other.id,
            linked_asset_id=asset.id,
            link_type=MIRRORED_LINK_TYPES[link_type],
        )
    )
    now = _utcnow()
    asset.updated_at = now
    other.updated_at = now
    db.flush()
    logger.info("linked asset %s -> %s as %s", asset.id, other.id, link_type)
    return asset


def _guard_consent_request(
    db: Session,
    *,
    asset_id: int,
    responder_id: str,
    request_type: str,
) -> None:
    existing = (
        db.query(models.AssetRequest)
        .filter(
            models.AssetRequest.asset_id == asset_id,
            models.AssetRequest.responder_id == responder_id,
            models.AssetRequest.request_type == request_type,
            models.AssetRequest.deleted_at.is_(None),
        )
        .all()
    )
    if any(request.accepted is False for request in existing):
        raise RequestPreviouslyDeclined(
            f"{responder_id} already declined a {request_type} request for asset {asset_id}"
        )
    if any(request.accepted is None for request in existing):
        raise DuplicateRequest(
            f"an open {request_type} request for asset {asset_id} is awaiting {responder_id}"
        )


def _open_request(
    db: Session,
    asset: models.Asset,
    requester: models.User,
    *,
    responder_id: str | None,
    payload: schemas.CreditPayload | schemas.LinkPayload | schemas.ReportPayload,
    messages: list[dict] | None = None,
) -> models.AssetRequest:
    now = _utcnow()
    request = models.AssetRequest(
        asset_id=asset.id,
        requester_id=requester.id,
        responder_id=responder_id,
        request_type=payload.kind,
        payload=payload.model_dump(mode="json", exclude={"kind"}),
        accepted=None,
        messages=messages or [],
        created_at=now,
        updated_at=now,
    )
    db.add(request)
    db.flush()
    logger.info(
        "%s request %s opened by %s on asset %s",
        payload.kind,
        request.id,
        requester.id,
        asset.id,
    )
    if responder_id is not None:
        alerts.notify(
            db,
            responder_id,
            "request_received",
            f"New {payload.kind} request",
            f'{requester.username} sent you a {payload.kind} request for "{asset.name}".',
            request_id=request.id,
        )
    return request


def request_link(
    db: Session,
    asset: models.Asset,
    requester: models.User,
    other: models.Asset,
    link_type: str,
) -> models.Asset | models.AssetRequest:
    """Link directly when the requester controls ``other``, otherwise ask its uploader."""

    _check_linkable(db, asset, other, link_type)
    if requester.id == other.uploader_id or rbac.is_elevated(requester):
        return add_link(db, asset, other, link_type)

    _guard_consent_request(
        db,
        asset_id=asset.id,
        responder_id=other.uploader_id,
        request_type="link",
    )
    return _open_request(
        db,
        asset,
        requester,
        responder_id=other.uploader_id,
        payload=schemas.LinkPayload(asset_id=other.id, link_type=link_type),
    )


def request_collab(
    db: Session,
    asset: models.Asset,
    requester: models.User,
    user_to_credit: models.User,
) -> models.AssetRequest:
    if user_to_credit.id == asset.uploader_id or user_to_credit.id in (asset.collaborators or []):
        raise ValidationFailure(f"{user_to_credit.id} is already credited on asset {asset.id}")
    _guard_consent_request(
        db,
        asset_id=asset.id,
        responder_id=user_to_credit.id,
        request_type="credit",
    )
    return _open_request(
        db,
        asset,
        requester,
        responder_id=user_to_credit.id,
        payload=schemas.CreditPayload(user_id=user_to_credit.id),
    )


def report(
    db: Session,
    asset: models.Asset,
    reporter: models.User,
    reason: str,
) -> models.AssetRequest:
    """Open a moderation report; the reason becomes the first thread message."""

    if reporter.id == asset.uploader_id:
        raise SelfReference("you cannot report your own asset")
    if not reason or not reason.strip():
        raise ValidationFailure("a report needs a reason")
    open_report = (
        db.query(models.AssetRequest.id)
        .filter(
            models.AssetRequest.asset_id == asset.id,
            models.AssetRequest.request_type == "report",
            models.AssetRequest.accepted.is_(None),
            models.AssetRequest.deleted_at.is_(None),
        )
        .first()
    )
    if open_report is not None:
        raise DuplicateRequest(f"asset {asset.id} already has an open report")
    return _open_request(
        db,
        asset,
        reporter,
        responder_id=None,
        payload=schemas.ReportPayload(),
        messages=[
            {
                "user_id": reporter.id,
                "message": reason.strip(),
                "timestamp": _utcnow().isoformat(),
            }
        ],
    )


def asset_to_out(db: Session, asset: models.Asset) -> schemas.AssetOut:
    uploader = db.get(models.User, asset.uploader_id)
    return schemas.AssetOut(
        id=asset.id,
        legacy_id=asset.legacy_id,
        file_format=asset.file_format,
        uploader=users.user_to_summary(uploader, asset.uploader_id),
        collaborators=list(asset.collaborators or []),
        name=asset.name,
        description=asset.description or "",
        license=asset.license,
        license_url=asset.license_url,
        source_url=asset.source_url,
        file_hash=asset.file_hash,
        file_size=asset.file_size,
        icons=list(asset.icon_names or []),
        status=asset.status,
        status_history=[
            schemas.StatusHistoryEntry(
                status=entry.status,
                reason=entry.reason,
                timestamp=entry.created_at,
                user_id=entry.actor_id,
            )
            for entry in status_history(asset)
        ],
        links=[
            schemas.LinkedAssetOut(id=link.linked_asset_id, link_type=link.link_type)
            for link in asset.links
        ],
        tags=list(asset.tags or []),
        created_at=asset.created_at,
        updated_at=asset.updated_at,
    )
