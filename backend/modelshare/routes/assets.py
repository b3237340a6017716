from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from .. import models, rbac, schemas
from ..auth import get_current_user, get_optional_user
from ..database import get_db
from ..services import assets as asset_service
from ..services import requests as request_service
from ..services import users as user_service
from ._errors import service_errors

# purpose: asset browsing, upload metadata, review and consent-request entry points
# status: active

router = APIRouter(prefix="/api/assets", tags=["assets"])


def _editable_asset(db: Session, asset_id: int, user: models.User, *, for_update: bool = False) -> models.Asset:
    with service_errors(db):
        asset = asset_service.get_asset(db, asset_id, for_update=for_update)
    if not rbac.can_edit(asset, user):
        raise HTTPException(status_code=403, detail="You are not allowed to edit this asset")
    return asset


@router.get("", response_model=schemas.AssetListOut)
def list_assets(
    status_filter: Optional[schemas.AssetStatus] = Query(None, alias="status"),
    tags: Optional[List[schemas.Tag]] = Query(None),
    file_format: Optional[schemas.FileFormat] = Query(None, alias="type"),
    uploader_id: Optional[str] = Query(None, alias="uploader"),
    page: Optional[int] = Query(None, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=100),
    db: Session = Depends(get_db),
    user: Optional[models.User] = Depends(get_optional_user),
):
    with service_errors(db):
        assets, total = asset_service.list_assets(
            db,
            user,
            status=status_filter,
            tags=tags,
            file_format=file_format,
            uploader_id=uploader_id,
            page=page,
            limit=limit,
        )
    return schemas.AssetListOut(
        assets=[asset_service.asset_to_out(db, asset) for asset in assets],
        total=total,
        page=page,
    )


@router.get("/multi", response_model=List[schemas.AssetOut])
def get_multiple_assets(
    ids: List[int] = Query(...),
    db: Session = Depends(get_db),
    user: Optional[models.User] = Depends(get_optional_user),
):
    with service_errors(db):
        assets = asset_service.get_assets_by_ids(db, ids, user)
    return [asset_service.asset_to_out(db, asset) for asset in assets]


@router.get("/{asset_id}", response_model=schemas.AssetOut)
def get_asset(
    asset_id: int,
    db: Session = Depends(get_db),
    user: Optional[models.User] = Depends(get_optional_user),
):
    with service_errors(db):
        asset = asset_service.get_asset(db, asset_id, actor=user, enforce_visibility=True)
    return asset_service.asset_to_out(db, asset)


@router.post("", response_model=schemas.AssetOut, status_code=status.HTTP_201_CREATED)
def create_asset(
    payload: schemas.AssetCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    with service_errors(db):
        asset = asset_service.create_asset(db, payload, uploader=user)
        db.commit()
    db.refresh(asset)
    return asset_service.asset_to_out(db, asset)


@router.put("/{asset_id}", response_model=schemas.AssetOut)
def update_asset(
    asset_id: int,
    patch: schemas.AssetUpdate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    asset = _editable_asset(db, asset_id, user)
    with service_errors(db):
        asset_service.update_asset(db, asset, patch)
        db.commit()
    db.refresh(asset)
    return asset_service.asset_to_out(db, asset)


@router.delete("/{asset_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_asset(
    asset_id: int,
    reason: str = Query("Removed.", min_length=1, max_length=320),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    asset = _editable_asset(db, asset_id, user)
    with service_errors(db):
        asset_service.remove_asset(db, asset, user, reason)
        db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{asset_id}/approval", response_model=schemas.AssetOut)
def change_status(
    asset_id: int,
    payload: schemas.AssetStatusChange,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    with service_errors(db):
        asset = asset_service.get_asset(db, asset_id, for_update=True)
    if not rbac.is_elevated(user) or not rbac.can_set_status(
        asset, user, payload.status, override=payload.override
    ):
        raise HTTPException(status_code=403, detail="You are not allowed to review this asset")
    with service_errors(db):
        asset_service.set_status(
            db,
            asset,
            payload.status,
            payload.reason,
            user.id,
            override=payload.override,
        )
        db.commit()
    db.refresh(asset)
    return asset_service.asset_to_out(db, asset)


@router.post("/{asset_id}/submit", response_model=schemas.AssetOut)
def submit_for_review(
    asset_id: int,
    payload: schemas.AssetSubmit,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    with service_errors(db):
        asset = asset_service.get_asset(db, asset_id, for_update=True)
    if not rbac.can_set_status(asset, user, "pending"):
        raise HTTPException(status_code=403, detail="Only the uploader may submit a private asset")
    with service_errors(db):
        asset_service.set_status(db, asset, "pending", payload.reason, user.id)
        db.commit()
    db.refresh(asset)
    return asset_service.asset_to_out(db, asset)


@router.post("/{asset_id}/link", response_model=schemas.AssetLinkResult)
def link_asset(
    asset_id: int,
    payload: schemas.AssetLinkCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    asset = _editable_asset(db, asset_id, user, for_update=True)
    with service_errors(db):
        other = asset_service.get_asset(
            db,
            payload.asset_id,
            actor=user,
            enforce_visibility=True,
            for_update=True,
        )
        result = asset_service.request_link(db, asset, user, other, payload.link_type)
        db.commit()
    if isinstance(result, models.AssetRequest):
        db.refresh(result)
        return schemas.AssetLinkResult(
            outcome="requested",
            request=request_service.request_to_out(result),
        )
    db.refresh(asset)
    return schemas.AssetLinkResult(outcome="linked", asset=asset_service.asset_to_out(db, asset))


@router.post(
    "/{asset_id}/collab",
    response_model=schemas.AssetRequestOut,
    status_code=status.HTTP_201_CREATED,
)
def request_credit(
    asset_id: int,
    payload: schemas.AssetCollabCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    asset = _editable_asset(db, asset_id, user)
    with service_errors(db):
        target = user_service.get_user(db, payload.user_id)
        request = asset_service.request_collab(db, asset, user, target)
        db.commit()
    db.refresh(request)
    return request_service.request_to_out(request)


@router.post(
    "/{asset_id}/report",
    response_model=schemas.AssetRequestOut,
    status_code=status.HTTP_201_CREATED,
)
def report_asset(
    asset_id: int,
    payload: schemas.AssetReportCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    with service_errors(db):
        asset = asset_service.get_asset(db, asset_id, actor=user, enforce_visibility=True)
        request = asset_service.report(db, asset, user, payload.reason)
        db.commit()
    db.refresh(request)
    return request_service.request_to_out(request)
