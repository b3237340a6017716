"""Utilities for recording asset status history entries."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy.orm import Session

from . import models

# purpose: append-only status audit trail with per-asset sequential ordering
# inputs: SQLAlchemy session, asset instance, status write metadata
# outputs: AssetStatusEvent rows with dense sequence numbers
# status: active


def record_status_event(
    db: Session,
    asset: models.Asset,
    status: str,
    reason: str,
    actor_id: str | None,
) -> models.AssetStatusEvent:
    """Persist one status history entry for the asset."""

    latest = (
        db.query(models.AssetStatusEvent)
        .filter(models.AssetStatusEvent.asset_id == asset.id)
        .order_by(models.AssetStatusEvent.sequence.desc())
        .first()
    )
    # pending (unflushed) entries are only visible on the relationship
    known = [entry.sequence for entry in asset.status_events if entry.sequence is not None]
    if latest is not None:
        known.append(latest.sequence)
    next_sequence = max(known, default=0) + 1
    event = models.AssetStatusEvent(
        asset_id=asset.id,
        sequence=next_sequence,
        status=status,
        reason=reason,
        actor_id=actor_id,
        created_at=datetime.now(timezone.utc),
    )
    db.add(event)
    asset.status_events.append(event)
    return event


def status_history(asset: models.Asset) -> list[models.AssetStatusEvent]:
    """Return the asset's history oldest first."""

    return sorted(asset.status_events, key=lambda event: event.sequence)
