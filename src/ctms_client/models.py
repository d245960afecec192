from __future__ import annotations

import enum
from typing import Any, Dict, FrozenSet, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from . import hal

T = TypeVar("T", bound=BaseModel)

COLLECTION_REL = "loc:collection"
ITEM_REL = "loc:item"
REFERENCED_OBJECT_REL = "loc:referenced-object"


class BaseType(str, enum.Enum):
    FOLDER = "folder"
    ASSET = "asset"


class AssetType(str, enum.Enum):
    SEQUENCE = "sequence"
    MASTERCLIP = "masterclip"
    SUBCLIP = "subclip"
    GROUP = "group"


class Link(BaseModel):
    href: str
    title: Optional[str] = None
    type: Optional[str] = None
    templated: Optional[bool] = None

    model_config = ConfigDict(extra="ignore")


class BaseHALModel(BaseModel):
    """
    Base model that handles HAL+JSON patterns.
    _links/_embedded stay loosely typed because CTMS uses:
      - single link objects
      - arrays of link objects (registry and auth resources)
      - templated hrefs
    """

    links: Dict[str, Any] = Field(default_factory=dict, alias="_links")
    embedded: Dict[str, Any] = Field(default_factory=dict, alias="_embedded")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def link_href(self, rel: str) -> Optional[str]:
        return hal.get_link_href({"_links": self.links}, rel)

    @property
    def capabilities(self) -> FrozenSet[str]:
        """Relations currently offered by the server for this resource."""
        return frozenset(
            rel for rel in self.links if self.link_href(rel) is not None
        )

    def can(self, rel: str) -> bool:
        return rel in self.capabilities

    def embedded_raw(self, rel: str) -> Optional[Dict[str, Any]]:
        value = self.embedded.get(rel)
        return value if isinstance(value, dict) else None

    def embedded_as(self, rel: str, model: Type[T]) -> Optional[T]:
        raw = self.embedded_raw(rel)
        if not raw:
            return None
        try:
            return model.model_validate(raw)
        except ValidationError:
            return None


# --- Document models ---


class Base(BaseModel):
    id: str = ""
    type: str = ""
    system_type: Optional[str] = Field(default=None, alias="systemType")
    system_id: Optional[str] = Field(default=None, alias="systemID")

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class Common(BaseModel):
    name: str = ""
    path: Optional[str] = None
    asset_type: Optional[str] = Field(default=None, alias="assetType")

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class AssetStatus(BaseModel):
    reserved: bool = False

    model_config = ConfigDict(extra="allow")


class Paging(BaseModel):
    offset: int = 0
    limit: int = 0
    elements: int = 0
    total_elements: Optional[int] = Field(default=None, alias="totalElements")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class AssetObject(BaseHALModel):
    """Typed view over a location item / asset document."""

    base: Base = Field(default_factory=Base)
    common: Common = Field(default_factory=Common)
    status: AssetStatus = Field(default_factory=AssetStatus)

    @property
    def is_folder(self) -> bool:
        return self.base.type == BaseType.FOLDER.value

    @property
    def ref(self) -> str:
        return self.base.id or self.common.name


class ResourceDescriptor(BaseModel):
    """One server-advertised relation and its {href, type} entries."""

    name: str
    links: List[Link] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @property
    def href(self) -> str:
        return self.links[0].href


class Session(BaseModel):
    """Bearer token envelope returned by the ROPC grant."""

    access_token: str
    token_type: str = "Bearer"
    expires_in: Optional[int] = None
    refresh_token: Optional[str] = None
    identity_providers: Dict[str, Any] = Field(default_factory=dict, exclude=True)

    model_config = ConfigDict(extra="ignore")

    @property
    def authorization(self) -> str:
        return f"Bearer {self.access_token}"


class BulkCommand(BaseModel):
    id: str = ""
    progress: Optional[int] = None

    model_config = ConfigDict(extra="allow")


class BulkResultEntry(BaseModel):
    success: bool = False
    data: Optional[Any] = None
    error_message: Optional[str] = Field(default=None, alias="errorMessage")

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class BulkCommandStatus(BaseHALModel):
    command: BulkCommand = Field(default_factory=BulkCommand)
    payload: Dict[str, Any] = Field(default_factory=dict)

    @property
    def target_ids(self) -> List[str]:
        params = self.payload.get("command-parameters") or {}
        ids = params.get("ids") or []
        return list(ids) if isinstance(ids, list) else []

    @property
    def results(self) -> List[BulkResultEntry]:
        raw = self.payload.get("result") or []
        return [BulkResultEntry.model_validate(r) for r in raw if isinstance(r, dict)]


# --- Input models ---


class Credentials(BaseModel):
    """Resource-owner credentials posted form-encoded to the ROPC endpoint."""

    username: str
    password: str
    grant_type: str = "password"

    model_config = ConfigDict(extra="allow")

    def form(self) -> Dict[str, str]:
        return {k: str(v) for k, v in self.model_dump().items() if v is not None}


class ClientConfig(BaseModel):
    client_token: str
    timeout_seconds: float = 30.0

    model_config = ConfigDict(extra="forbid")


__all__ = [
    "COLLECTION_REL",
    "ITEM_REL",
    "REFERENCED_OBJECT_REL",
    "BaseType",
    "AssetType",
    "Link",
    "BaseHALModel",
    "Base",
    "Common",
    "AssetStatus",
    "Paging",
    "AssetObject",
    "ResourceDescriptor",
    "Session",
    "BulkCommand",
    "BulkResultEntry",
    "BulkCommandStatus",
    "Credentials",
    "ClientConfig",
]
