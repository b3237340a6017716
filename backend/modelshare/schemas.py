"""Pydantic schemas consolidating backend API contracts."""

# purpose: request and response contracts for the asset, request, alert, and user surfaces
# status: active

from datetime import datetime
from typing import Annotated, Optional, Literal, List, Union
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


AssetStatus = Literal["private", "pending", "approved", "rejected"]
LinkType = Literal["older", "newer", "altformat", "alternate"]
RequestType = Literal["credit", "link", "report"]
UserRole = Literal["admin", "developer", "moderator", "trusted", "banned", "secret"]
AlertType = Literal[
    "asset_approved",
    "asset_rejected",
    "asset_removal",
    "request_received",
    "request_accepted",
    "request_declined",
    "request_message",
]
License = Literal[
    "cc0",
    "cc-by-4.0",
    "cc-by-sa-4.0",
    "cc-by-nc-4.0",
    "cc-by-nc-sa-4.0",
    "cc-by-nd-4.0",
    "cc-by-nc-nd-4.0",
    "mit",
    "all-rights-reserved",
    "custom",
]
Tag = Literal[
    "contest",
    "fbt",
    "meme",
    "particles",
    "recreation",
    "original",
    "holiday",
    "animated",
    "custom-colors",
    "lights",
    "nsfw",
]
FileFormat = Literal[
    "avatar_avatar",
    "saber_saber",
    "saber_wacker",
    "platform_plat",
    "note_bloq",
    "note_cyoob",
    "wall_pixie",
    "wall_box",
    "healthbar_energy",
    "sound_ogg",
    "sound_mp3",
    "banner_png",
    "chromaenv_json",
    "countersplusconfig_json",
    "hsvconfig_json",
    "camera2config_json",
]

MAX_TAGS = 5


class SponsorUrl(BaseModel):
    name: str = Field(min_length=1, max_length=64)
    url: str = Field(min_length=1, max_length=512)


class UserSummary(BaseModel):
    id: str
    username: str
    display_name: str = ""
    bio: str = ""
    avatar_url: Optional[str] = None
    sponsor_urls: Optional[List[SponsorUrl]] = None
    roles: List[str] = Field(default_factory=list)
    model_config = ConfigDict(from_attributes=True)


class UserProfileUpdate(BaseModel):
    display_name: Optional[str] = Field(default=None, max_length=64)
    bio: Optional[str] = Field(default=None, max_length=4096)
    avatar_url: Optional[str] = Field(default=None, max_length=512)
    sponsor_urls: Optional[List[SponsorUrl]] = None


class UserRolesUpdate(BaseModel):
    roles: List[UserRole]


class UserImport(BaseModel):
    id: str = Field(min_length=1, max_length=32)
    username: str = Field(min_length=1, max_length=64)
    display_name: str = ""
    bio: str = ""
    avatar_url: Optional[str] = None
    roles: List[UserRole] = Field(default_factory=list)


class StatusHistoryEntry(BaseModel):
    status: AssetStatus
    reason: str
    timestamp: datetime
    user_id: Optional[str] = None


class LinkedAssetOut(BaseModel):
    id: int
    link_type: LinkType


class AssetCreate(BaseModel):
    name: str = Field(min_length=1, max_length=64)
    description: str = Field(default="", max_length=4096)
    license: License
    license_url: Optional[str] = Field(default=None, max_length=512)
    source_url: Optional[str] = Field(default=None, max_length=512)
    file_format: FileFormat
    tags: List[Tag] = Field(default_factory=list, max_length=MAX_TAGS)
    file_hash: str = Field(min_length=1, max_length=64)
    file_size: int = Field(gt=0)
    icon_names: List[str] = Field(default_factory=list)
    legacy_id: Optional[int] = None


class AssetUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=64)
    description: Optional[str] = Field(default=None, max_length=4096)
    tags: Optional[List[Tag]] = Field(default=None, max_length=MAX_TAGS)


class AssetStatusChange(BaseModel):
    status: AssetStatus
    reason: str = Field(default="No reason provided.", min_length=1, max_length=320)
    override: bool = False


class AssetSubmit(BaseModel):
    reason: str = Field(default="Submitted for review.", min_length=1, max_length=320)


class AssetLinkCreate(BaseModel):
    asset_id: int = Field(gt=0)
    link_type: LinkType


class AssetCollabCreate(BaseModel):
    user_id: str = Field(min_length=1, max_length=32)


class AssetReportCreate(BaseModel):
    reason: str = Field(min_length=1, max_length=4096)


class AssetOut(BaseModel):
    id: int
    legacy_id: Optional[int] = None
    file_format: str
    uploader: UserSummary
    collaborators: List[str] = Field(default_factory=list)
    name: str
    description: str
    license: str
    license_url: Optional[str] = None
    source_url: Optional[str] = None
    file_hash: str
    file_size: int
    icons: List[str] = Field(default_factory=list)
    status: AssetStatus
    status_history: List[StatusHistoryEntry] = Field(default_factory=list)
    links: List[LinkedAssetOut] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class AssetListOut(BaseModel):
    assets: List[AssetOut]
    total: int
    page: Optional[int] = None


class CreditPayload(BaseModel):
    kind: Literal["credit"] = "credit"
    user_id: str


class LinkPayload(BaseModel):
    kind: Literal["link"] = "link"
    asset_id: int
    link_type: LinkType


class ReportPayload(BaseModel):
    kind: Literal["report"] = "report"


RequestPayload = Annotated[
    Union[CreditPayload, LinkPayload, ReportPayload],
    Field(discriminator="kind"),
]
REQUEST_PAYLOAD_ADAPTER = TypeAdapter(RequestPayload)


class RequestMessage(BaseModel):
    user_id: str
    message: str
    timestamp: datetime


class RequestMessageCreate(BaseModel):
    message: str = Field(min_length=1, max_length=4096)


class AssetRequestOut(BaseModel):
    id: int
    asset_id: int
    requester_id: str
    responder_id: Optional[str] = None
    request_type: RequestType
    payload: RequestPayload
    messages: List[RequestMessage] = Field(default_factory=list)
    accepted: Optional[bool] = None
    resolved_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class AssetLinkResult(BaseModel):
    outcome: Literal["linked", "requested"]
    asset: Optional[AssetOut] = None
    request: Optional[AssetRequestOut] = None


class RequestListOut(BaseModel):
    incoming: List[AssetRequestOut]
    outgoing: List[AssetRequestOut]
    # null for users who cannot review reports
    reports: Optional[List[AssetRequestOut]] = None


class RequestCountsOut(BaseModel):
    incoming: int
    outgoing: int
    reports: Optional[int] = None


class AlertOut(BaseModel):
    id: int
    type: AlertType
    asset_id: Optional[int] = None
    request_id: Optional[int] = None
    header: str
    message: str
    read: bool
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class ServiceStatusOut(BaseModel):
    status: Literal["ok"] = "ok"
    version: str
    api_versions: List[str] = Field(default_factory=lambda: ["v3"])
