"""User lookup, projection and role administration."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy.orm import Session

from .. import models, rbac, schemas
from .errors import ConflictOnWrite, Forbidden, NotFound, ValidationFailure

# purpose: identity operations behind the user routes and asset projections
# status: active

logger = logging.getLogger(__name__)

PLACEHOLDER_USERNAME = "Unknown User"


def get_user(db: Session, user_id: str) -> models.User:
    user = db.get(models.User, user_id)
    if user is None or user.deleted_at is not None:
        raise NotFound(f"user {user_id} not found")
    return user


def user_to_summary(user: models.User | None, fallback_id: str) -> schemas.UserSummary:
    """Project a user, degrading to a placeholder when the account is gone."""

    if user is None or user.deleted_at is not None:
        return schemas.UserSummary(
            id=fallback_id,
            username=PLACEHOLDER_USERNAME,
            display_name=PLACEHOLDER_USERNAME,
            avatar_url=models.DEFAULT_AVATAR_URL,
        )
    return schemas.UserSummary.model_validate(user)


def update_profile(
    db: Session,
    user: models.User,
    patch: schemas.UserProfileUpdate,
) -> models.User:
    if patch.display_name is not None:
        user.display_name = patch.display_name
    if patch.bio is not None:
        user.bio = patch.bio
    if patch.avatar_url is not None:
        user.avatar_url = patch.avatar_url
    if patch.sponsor_urls is not None:
        user.sponsor_urls = [entry.model_dump() for entry in patch.sponsor_urls]
    user.updated_at = datetime.now(timezone.utc)
    db.add(user)
    db.flush()
    return user


def set_roles(
    db: Session,
    target: models.User,
    roles: Iterable[str],
    actor: models.User,
) -> models.User:
    if not rbac.has_role(actor, rbac.ADMIN):
        raise Forbidden("only admins may change roles")
    target.roles = rbac.normalize_roles(roles)
    target.updated_at = datetime.now(timezone.utc)
    db.add(target)
    db.flush()
    logger.info("roles of %s set to %s by %s", target.id, target.roles, actor.id)
    return target


def import_user(
    db: Session,
    payload: schemas.UserImport,
    actor: models.User,
) -> models.User:
    """Create a user record for an identity that has not logged in yet."""

    if not rbac.has_role(actor, rbac.ADMIN):
        raise Forbidden("only admins may import users")
    if db.get(models.User, payload.id) is not None:
        raise ConflictOnWrite(f"user {payload.id} already exists")
    user = models.User(
        id=payload.id,
        username=payload.username,
        display_name=payload.display_name or payload.username,
        bio=payload.bio,
        avatar_url=payload.avatar_url or models.DEFAULT_AVATAR_URL,
        roles=rbac.normalize_roles(payload.roles),
    )
    db.add(user)
    db.flush()
    logger.info("user %s imported by %s", user.id, actor.id)
    return user


def toggle_secret_role(db: Session, user: models.User, enabled: bool) -> models.User:
    held = rbac.has_role(user, rbac.SECRET)
    if held == enabled:
        state = "enabled" if enabled else "disabled"
        raise ValidationFailure(f"secret role is already {state}")
    roles = list(user.roles or [])
    if enabled:
        roles.append(rbac.SECRET)
    else:
        roles = [role for role in roles if role != rbac.SECRET]
    user.roles = rbac.normalize_roles(roles)
    user.updated_at = datetime.now(timezone.utc)
    db.add(user)
    db.flush()
    return user
