from typing import Literal

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import models, rbac, schemas
from ..auth import get_current_user, get_current_user_allow_banned, require_roles
from ..database import get_db
from ..services import users as user_service
from ._errors import service_errors

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("/me", response_model=schemas.UserSummary)
def read_profile(current_user: models.User = Depends(get_current_user_allow_banned)):
    return current_user


@router.patch("/me", response_model=schemas.UserSummary)
def update_profile(
    update: schemas.UserProfileUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    user_service.update_profile(db, current_user, update)
    db.commit()
    db.refresh(current_user)
    return current_user


@router.post("/me/secret/{action}", response_model=schemas.UserSummary)
def toggle_secret(
    action: Literal["add", "remove"],
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    with service_errors(db):
        user_service.toggle_secret_role(db, current_user, action == "add")
        db.commit()
    db.refresh(current_user)
    return current_user


@router.post("/import", response_model=schemas.UserSummary, status_code=status.HTTP_201_CREATED)
def import_user(
    payload: schemas.UserImport,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_roles(rbac.ADMIN)),
):
    with service_errors(db):
        user = user_service.import_user(db, payload, admin)
        db.commit()
    db.refresh(user)
    return user


@router.get("/{user_id}", response_model=schemas.UserSummary)
def read_user(
    user_id: str,
    db: Session = Depends(get_db),
):
    with service_errors(db):
        return user_service.get_user(db, user_id)


@router.put("/{user_id}/roles", response_model=schemas.UserSummary)
def set_roles(
    user_id: str,
    payload: schemas.UserRolesUpdate,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_roles(rbac.ADMIN)),
):
    with service_errors(db):
        target = user_service.get_user(db, user_id)
        user_service.set_roles(db, target, payload.roles, admin)
        db.commit()
    db.refresh(target)
    return target
