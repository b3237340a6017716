from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from .. import models, rbac, schemas
from ..auth import get_current_user
from ..database import get_db
from ..services import requests as request_service
from ._errors import service_errors

router = APIRouter(prefix="/api/requests", tags=["requests"])


def _load_request(db: Session, request_id: int) -> models.AssetRequest:
    with service_errors(db):
        return request_service.get_request(db, request_id)


@router.get("", response_model=schemas.RequestListOut)
def list_requests(
    include_actioned: bool = False,
    asset_id: Optional[int] = None,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    incoming, outgoing, reports = request_service.list_requests(
        db,
        user,
        include_actioned=include_actioned,
        asset_id=asset_id,
    )
    return schemas.RequestListOut(
        incoming=[request_service.request_to_out(r) for r in incoming],
        outgoing=[request_service.request_to_out(r) for r in outgoing],
        reports=(
            [request_service.request_to_out(r) for r in reports]
            if reports is not None
            else None
        ),
    )


@router.get("/counts", response_model=schemas.RequestCountsOut)
def request_counts(
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    return request_service.request_counts(db, user)


@router.get("/{request_id}", response_model=schemas.AssetRequestOut)
def get_request(
    request_id: int,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    request = _load_request(db, request_id)
    if not rbac.can_view_request(request, user):
        raise HTTPException(status_code=403, detail="You are not allowed to view this request")
    return request_service.request_to_out(request)


@router.post("/{request_id}/messages", response_model=schemas.AssetRequestOut)
def post_message(
    request_id: int,
    payload: schemas.RequestMessageCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    request = _load_request(db, request_id)
    with service_errors(db):
        request_service.add_message(db, request, user, payload.message)
        db.commit()
    db.refresh(request)
    return request_service.request_to_out(request)


@router.post("/{request_id}/accept", response_model=schemas.AssetRequestOut)
def accept_request(
    request_id: int,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    request = _load_request(db, request_id)
    if not rbac.can_respond_to_request(request, user):
        raise HTTPException(status_code=403, detail="You cannot respond to this request")
    with service_errors(db):
        request_service.accept(db, request, user.id)
        db.commit()
    db.refresh(request)
    return request_service.request_to_out(request)


@router.post("/{request_id}/decline", response_model=schemas.AssetRequestOut)
def decline_request(
    request_id: int,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    request = _load_request(db, request_id)
    if not rbac.can_respond_to_request(request, user):
        raise HTTPException(status_code=403, detail="You cannot respond to this request")
    with service_errors(db):
        request_service.decline(db, request, user.id)
        db.commit()
    db.refresh(request)
    return request_service.request_to_out(request)
