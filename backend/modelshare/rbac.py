from __future__ import annotations

from typing import Iterable

from . import models

# purpose: centralize authorization predicates for assets and consent requests
# status: active
# invariant: every function is side-effect free and accepts None for anonymous actors

ADMIN = "admin"
DEVELOPER = "developer"
MODERATOR = "moderator"
TRUSTED = "trusted"
BANNED = "banned"
SECRET = "secret"

ALL_STATUSES = frozenset({"private", "pending", "approved", "rejected"})
PUBLIC_STATUSES = frozenset({"approved", "pending"})

_STAFF_VIEW_ROLES = frozenset({ADMIN, MODERATOR, DEVELOPER})
_ELEVATED_ROLES = frozenset({ADMIN, MODERATOR})


def has_role(actor: models.User | None, *roles: str) -> bool:
    """Return True when the actor holds any of the given roles."""

    if actor is None:
        return False
    held = set(actor.roles or [])
    return any(role in held for role in roles)


def is_elevated(actor: models.User | None) -> bool:
    return has_role(actor, *_ELEVATED_ROLES)


def is_banned(actor: models.User | None) -> bool:
    return has_role(actor, BANNED)


def normalize_roles(roles: Iterable[str]) -> list[str]:
    """Deduplicate a role list while keeping first-seen order."""

    seen: list[str] = []
    for role in roles:
        if role not in seen:
            seen.append(role)
    return seen


def allowed_view_statuses(actor: models.User | None) -> set[str]:
    """Statuses the actor may browse regardless of ownership."""

    if has_role(actor, *_STAFF_VIEW_ROLES):
        return set(ALL_STATUSES)
    return set(PUBLIC_STATUSES)


def can_view(asset: models.Asset, actor: models.User | None) -> bool:
    if asset.status in allowed_view_statuses(actor):
        return True
    return actor is not None and actor.id == asset.uploader_id


def can_edit(asset: models.Asset, actor: models.User | None) -> bool:
    if actor is None:
        return False
    return actor.id == asset.uploader_id or is_elevated(actor)


def can_set_status(
    asset: models.Asset,
    actor: models.User | None,
    new_status: str,
    *,
    override: bool = False,
) -> bool:
    """Moderators drive the review table, uploaders may only submit a private asset."""

    if actor is None:
        return False
    if override:
        return has_role(actor, ADMIN)
    if is_elevated(actor):
        return True
    return (
        actor.id == asset.uploader_id
        and asset.status == "private"
        and new_status in {"private", "pending"}
    )


def can_view_request(request: models.AssetRequest, actor: models.User | None) -> bool:
    if actor is None:
        return False
    if is_elevated(actor):
        return True
    return actor.id in {request.requester_id, request.responder_id}


def can_respond_to_request(request: models.AssetRequest, actor: models.User | None) -> bool:
    if actor is None:
        return False
    if request.request_type == "report":
        return is_elevated(actor)
    return actor.id == request.responder_id or is_elevated(actor)


def can_message_request(request: models.AssetRequest, actor: models.User | None) -> bool:
    """Only report threads carry messages; credit and link requests never do."""

    if actor is None or request.request_type != "report":
        return False
    return actor.id == request.requester_id or is_elevated(actor)
