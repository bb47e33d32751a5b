"""
Catalog models: source feed items, store records and match results.

SourceItem is rebuilt from the feed on every run and never mutated.
DestinationRecord mirrors what the store returned for this run only.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import ConfigDict, Field

from models.base import BaseSchema


class RecordStatus(str, Enum):
    """Store product status."""
    ACTIVE = "active"
    DRAFT = "draft"


class MatchType(str, Enum):
    """How a source item was linked to a store record."""
    SKU = "sku"
    HANDLE = "handle"
    TITLE = "title"
    TITLE_FUZZY = "title-fuzzy"
    NONE = "none"


class SourceItem(BaseSchema):
    """One product from the supplier feed."""

    model_config = ConfigDict(frozen=True)

    sku: str = Field(..., min_length=1, description="Supplier SKU")
    title: str = Field(..., min_length=1)
    normalized_title: str = Field(..., description="normalize_text(title)")
    handle: str = Field(..., description="Handle derived from the product URL or title")
    inventory_level: int = Field(default=0, ge=0)
    price: Decimal = Field(default=Decimal("0"), ge=0)
    description: str = ""
    images: tuple[str, ...] = ()


class DestinationVariant(BaseSchema):
    """The single variant the integration manages on a store product."""

    id: Optional[str] = None
    sku: Optional[str] = None
    inventory_item_id: Optional[str] = None
    price: Optional[Decimal] = None
    inventory_managed: bool = True


class DestinationRecord(BaseSchema):
    """A product as returned by the store."""

    id: str
    handle: str = ""
    title: str = ""
    tags: set[str] = Field(default_factory=set)
    status: RecordStatus = RecordStatus.ACTIVE
    created_at: Optional[datetime] = None
    variant: DestinationVariant = Field(default_factory=DestinationVariant)

    @property
    def sku(self) -> Optional[str]:
        return self.variant.sku


class MatchResult(BaseSchema):
    """Outcome of resolving one source item against the store."""

    record: Optional[DestinationRecord] = None
    match_type: MatchType = MatchType.NONE
    confidence: Optional[float] = None

    @property
    def matched(self) -> bool:
        return self.record is not None

    @property
    def label(self) -> str:
        """Match type as reported in logs, e.g. ``title-fuzzy-67``."""
        if self.match_type == MatchType.TITLE_FUZZY and self.confidence is not None:
            return f"{self.match_type.value}-{round(self.confidence)}"
        return self.match_type.value
