"""Core data models shared by the catalog reconciliation services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

VENUE_ACTIVE = "active"
VENUE_STALE = "stale"
VENUE_ARCHIVED = "archived"

DISCOVERED = "discovered"
VERIFIED = "verified"
REJECTED = "rejected"
PROMOTED = "promoted"


@dataclass(slots=True)
class Address:
    city: str = ""
    country: str = ""
    street: Optional[str] = None
    postal_code: Optional[str] = None


@dataclass(slots=True)
class Coordinates:
    lat: float
    lng: float


@dataclass(slots=True)
class DeliveryLink:
    """A venue's listing on a delivery platform."""

    platform: str
    url: str
    venue_id: Optional[str] = None


@dataclass(slots=True)
class Price:
    amount: float = 0.0
    currency: str = "CHF"


@dataclass(slots=True)
class Venue:
    """Canonical production venue."""

    id: str
    name: str
    address: Address = field(default_factory=Address)
    chain_id: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    delivery_platforms: List[DeliveryLink] = field(default_factory=list)
    status: str = VENUE_ACTIVE
    last_verified: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    extra: Dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass(slots=True)
class Dish:
    """Production dish; owned by exactly one venue through ``venue_id``."""

    id: str
    venue_id: str
    name: str
    description: str = ""
    planted_products: List[str] = field(default_factory=list)
    price: Price = field(default_factory=Price)
    dietary_tags: List[str] = field(default_factory=list)
    status: str = VENUE_ACTIVE
    last_verified: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    extra: Dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass(slots=True)
class EmbeddedDish:
    """Dish found together with a discovered venue (not a document of its own)."""

    name: str
    description: str = ""
    price: Optional[Any] = None
    currency: Optional[str] = None
    planted_product: Optional[str] = None
    product_sku: Optional[str] = None
    dietary_tags: List[str] = field(default_factory=list)


@dataclass(slots=True)
class DiscoveredVenue:
    id: str
    name: str
    address: Address = field(default_factory=Address)
    chain_id: Optional[str] = None
    chain_name: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    delivery_platforms: List[DeliveryLink] = field(default_factory=list)
    dishes: List[EmbeddedDish] = field(default_factory=list)
    status: str = DISCOVERED
    confidence_score: float = 0.0
    production_venue_id: Optional[str] = None
    promoted_at: Optional[datetime] = None
    verified_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @property
    def eligible(self) -> bool:
        """Verified and never promoted; ``production_venue_id`` is the idempotency marker."""
        return self.status == VERIFIED and not self.production_venue_id and self.promoted_at is None


@dataclass(slots=True)
class DiscoveredDish:
    id: str
    venue_id: str
    name: str
    venue_name: Optional[str] = None
    description: str = ""
    planted_product: Optional[str] = None
    price_by_country: Dict[str, Any] = field(default_factory=dict)
    dietary_tags: List[str] = field(default_factory=list)
    status: str = DISCOVERED
    confidence_score: float = 0.0
    production_dish_id: Optional[str] = None
    promoted_at: Optional[datetime] = None
    verified_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @property
    def eligible(self) -> bool:
        return self.status == VERIFIED and not self.production_dish_id and self.promoted_at is None
