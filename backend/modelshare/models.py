import sqlalchemy as sa
from sqlalchemy import (
    Column,
    String,
    Boolean,
    DateTime,
    ForeignKey,
    JSON,
    Integer,
    Text,
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from .database import Base

DEFAULT_AVATAR_URL = "https://cdn.discordapp.com/embed/avatars/0.png"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"
    # external identity id (chat platform snowflake), never generated locally
    id = Column(String(32), primary_key=True)
    username = Column(String, nullable=False)
    display_name = Column(String, nullable=False, default="")
    bio = Column(Text, nullable=False, default="")
    avatar_url = Column(String, nullable=False, default=DEFAULT_AVATAR_URL)
    sponsor_urls = Column(JSON, nullable=True)
    roles = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    alerts = relationship(
        "Alert", back_populates="user", cascade="all, delete-orphan"
    )


class Asset(Base):
    __tablename__ = "assets"
    id = Column(Integer, primary_key=True, autoincrement=True)
    legacy_id = Column(Integer, unique=True, nullable=True)
    file_format = Column(String, nullable=False)
    # uploader is the account that put the file on the platform, not necessarily the author
    uploader_id = Column(String(32), ForeignKey("users.id"), nullable=False, index=True)
    collaborators = Column(JSON, nullable=False, default=list)
    name = Column(String(64), nullable=False)
    description = Column(Text, nullable=False, default="")
    license = Column(String, nullable=False)
    license_url = Column(String, nullable=True)
    source_url = Column(String, nullable=True)
    file_hash = Column(String(64), unique=True, nullable=False)
    file_size = Column(Integer, nullable=False)
    icon_names = Column(JSON, nullable=False, default=list)
    status = Column(String, nullable=False, default="private", index=True)
    tags = Column(JSON, nullable=False, default=list)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    __mapper_args__ = {"version_id_col": version}

    uploader = relationship("User", foreign_keys=[uploader_id])
    status_events = relationship(
        "AssetStatusEvent",
        back_populates="asset",
        cascade="all, delete-orphan",
        order_by="AssetStatusEvent.sequence",
    )
    links = relationship(
        "AssetLink",
        back_populates="asset",
        cascade="all, delete-orphan",
        foreign_keys="AssetLink.asset_id",
        order_by="AssetLink.id",
    )


class AssetStatusEvent(Base):
    __tablename__ = "asset_status_events"
    __table_args__ = (
        sa.UniqueConstraint("asset_id", "sequence", name="uq_asset_status_sequence"),
    )

    # append-only audit trail of status writes; sequence is dense per asset
    id = Column(Integer, primary_key=True, autoincrement=True)
    asset_id = Column(
        Integer,
        ForeignKey("assets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sequence = Column(Integer, nullable=False)
    status = Column(String, nullable=False)
    reason = Column(Text, nullable=False)
    actor_id = Column(String(32), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    asset = relationship("Asset", back_populates="status_events")


class AssetLink(Base):
    __tablename__ = "asset_links"
    __table_args__ = (
        sa.UniqueConstraint("asset_id", "linked_asset_id", name="uq_asset_link_pair"),
        sa.CheckConstraint("asset_id <> linked_asset_id", name="ck_asset_link_not_self"),
    )

    # one logical edge is stored as two mirrored rows, one per endpoint
    id = Column(Integer, primary_key=True, autoincrement=True)
    asset_id = Column(
        Integer,
        ForeignKey("assets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    linked_asset_id = Column(
        Integer,
        ForeignKey("assets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    link_type = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    asset = relationship("Asset", back_populates="links", foreign_keys=[asset_id])


class AssetRequest(Base):
    __tablename__ = "asset_requests"
    id = Column(Integer, primary_key=True, autoincrement=True)
    asset_id = Column(Integer, ForeignKey("assets.id"), nullable=False, index=True)
    requester_id = Column(String(32), ForeignKey("users.id"), nullable=False, index=True)
    # null only for reports, which are resolved by moderators
    responder_id = Column(String(32), ForeignKey("users.id"), nullable=True, index=True)
    request_type = Column(String, nullable=False, index=True)
    payload = Column(JSON, nullable=False, default=dict)
    accepted = Column(Boolean, nullable=True)
    resolved_by = Column(String(32), ForeignKey("users.id"), nullable=True)
    messages = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    asset = relationship("Asset")

    @property
    def is_open(self) -> bool:
        return self.accepted is None


class Alert(Base):
    __tablename__ = "alerts"
    __table_args__ = (
        sa.CheckConstraint(
            "asset_id IS NULL OR request_id IS NULL",
            name="ck_alert_single_association",
        ),
    )
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(32), ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String, nullable=False)
    asset_id = Column(Integer, ForeignKey("assets.id"), nullable=True)
    request_id = Column(Integer, ForeignKey("asset_requests.id"), nullable=True)
    header = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    read = Column(Boolean, default=False, nullable=False)
    # set once the out-of-band chat delivery went through
    delivered = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    user = relationship("User", back_populates="alerts")
