"""Utilities for converting store documents to models and back."""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from catalog_sync.models import (
    DISCOVERED,
    VENUE_ACTIVE,
    Address,
    Coordinates,
    DeliveryLink,
    DiscoveredDish,
    DiscoveredVenue,
    Dish,
    EmbeddedDish,
    Price,
    Venue,
)

logger = logging.getLogger(__name__)

DEFAULT_PLANTED_PRODUCT = "planted.chicken"

_PRICE_PATTERN = re.compile(r"([A-Z]{3}|[€$£])?\s*(\d+(?:[.,]\d+)?)")
_CURRENCY_SYMBOLS = {"€": "EUR", "$": "USD", "£": "GBP"}

_VENUE_FIELDS = {
    "id", "name", "address", "chain_id", "coordinates", "location", "delivery_platforms",
    "status", "last_verified", "created_at", "updated_at",
}
_DISH_FIELDS = {
    "id", "venue_id", "name", "description", "planted_products", "price", "dietary_tags",
    "status", "last_verified", "created_at", "updated_at",
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            logger.debug("Unable to parse timestamp %r", value)
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _strip_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    value_str = str(value).strip()
    return value_str or None


def _safe_float(value: Any) -> Optional[float]:
    try:
        if value is None:
            return None
        return float(value)
    except (TypeError, ValueError):
        return None


def address_from_document(data: Optional[Dict[str, Any]]) -> Address:
    data = data or {}
    return Address(
        city=str(data.get("city") or ""),
        country=str(data.get("country") or ""),
        street=_strip_or_none(data.get("street")),
        postal_code=_strip_or_none(data.get("postal_code")),
    )


def address_to_document(address: Address) -> Dict[str, Any]:
    return {
        "street": address.street,
        "city": address.city,
        "postal_code": address.postal_code,
        "country": address.country,
    }


def coordinates_from_document(data: Optional[Dict[str, Any]]) -> Optional[Coordinates]:
    """Accepts ``{lat, lng}`` or ``{latitude, longitude}``.

    An exact ``(0, 0)`` is the placeholder older promotions wrote for "no coordinates"
    and is read back as missing.
    """
    if not data:
        return None
    lat = _safe_float(data.get("lat", data.get("latitude")))
    lng = _safe_float(data.get("lng", data.get("longitude")))
    if lat is None or lng is None:
        return None
    if lat == 0 and lng == 0:
        return None
    return Coordinates(lat=lat, lng=lng)


def coordinates_to_document(coordinates: Optional[Coordinates]) -> Optional[Dict[str, float]]:
    if coordinates is None:
        return None
    return {"lat": coordinates.lat, "lng": coordinates.lng}


def links_from_document(items: Optional[Iterable[Dict[str, Any]]]) -> List[DeliveryLink]:
    links: List[DeliveryLink] = []
    for raw in items or []:
        url = _strip_or_none(raw.get("url"))
        if not url:
            continue
        links.append(DeliveryLink(platform=str(raw.get("platform") or ""), url=url, venue_id=raw.get("venue_id")))
    return links


def links_to_document(links: Iterable[DeliveryLink]) -> List[Dict[str, Any]]:
    return [{"platform": link.platform, "url": link.url, "venue_id": link.venue_id} for link in links]


def venue_from_document(data: Dict[str, Any]) -> Venue:
    return Venue(
        id=data["id"],
        name=str(data.get("name") or ""),
        address=address_from_document(data.get("address")),
        chain_id=_strip_or_none(data.get("chain_id")),
        coordinates=coordinates_from_document(data.get("coordinates") or data.get("location")),
        delivery_platforms=links_from_document(data.get("delivery_platforms")),
        status=data.get("status") or VENUE_ACTIVE,
        last_verified=parse_timestamp(data.get("last_verified")),
        created_at=parse_timestamp(data.get("created_at")),
        updated_at=parse_timestamp(data.get("updated_at")),
        extra={key: value for key, value in data.items() if key not in _VENUE_FIELDS},
    )


def venue_to_document(venue: Venue) -> Dict[str, Any]:
    return {
        **venue.extra,
        "id": venue.id,
        "name": venue.name,
        "chain_id": venue.chain_id,
        "address": address_to_document(venue.address),
        "coordinates": coordinates_to_document(venue.coordinates),
        "delivery_platforms": links_to_document(venue.delivery_platforms),
        "status": venue.status,
        "last_verified": format_timestamp(venue.last_verified),
        "created_at": format_timestamp(venue.created_at),
        "updated_at": format_timestamp(venue.updated_at),
    }


def dish_from_document(data: Dict[str, Any]) -> Dish:
    price = data.get("price") or {}
    return Dish(
        id=data["id"],
        venue_id=data.get("venue_id") or "",
        name=str(data.get("name") or ""),
        description=data.get("description") or "",
        planted_products=list(data.get("planted_products") or []),
        price=Price(amount=_safe_float(price.get("amount")) or 0.0, currency=price.get("currency") or "CHF"),
        dietary_tags=list(data.get("dietary_tags") or []),
        status=data.get("status") or VENUE_ACTIVE,
        last_verified=parse_timestamp(data.get("last_verified")),
        created_at=parse_timestamp(data.get("created_at")),
        updated_at=parse_timestamp(data.get("updated_at")),
        extra={key: value for key, value in data.items() if key not in _DISH_FIELDS},
    )


def dish_to_document(dish: Dish) -> Dict[str, Any]:
    return {
        **dish.extra,
        "id": dish.id,
        "venue_id": dish.venue_id,
        "name": dish.name,
        "description": dish.description,
        "planted_products": list(dish.planted_products),
        "price": {"amount": dish.price.amount, "currency": dish.price.currency},
        "dietary_tags": list(dish.dietary_tags),
        "status": dish.status,
        "last_verified": format_timestamp(dish.last_verified),
        "created_at": format_timestamp(dish.created_at),
        "updated_at": format_timestamp(dish.updated_at),
    }


def embedded_dish_from_document(data: Dict[str, Any]) -> EmbeddedDish:
    return EmbeddedDish(
        name=str(data.get("name") or ""),
        description=data.get("description") or "",
        price=data.get("price"),
        currency=_strip_or_none(data.get("currency")),
        planted_product=_strip_or_none(data.get("planted_product")),
        product_sku=_strip_or_none(data.get("product_sku")),
        dietary_tags=list(data.get("dietary_tags") or []),
    )


def discovered_venue_from_document(data: Dict[str, Any]) -> DiscoveredVenue:
    return DiscoveredVenue(
        id=data["id"],
        name=str(data.get("name") or ""),
        address=address_from_document(data.get("address")),
        chain_id=_strip_or_none(data.get("chain_id")),
        chain_name=_strip_or_none(data.get("chain_name")),
        coordinates=coordinates_from_document(data.get("coordinates")),
        delivery_platforms=links_from_document(data.get("delivery_platforms")),
        dishes=[embedded_dish_from_document(raw) for raw in data.get("dishes") or [] if raw.get("name")],
        status=data.get("status") or DISCOVERED,
        confidence_score=_safe_float(data.get("confidence_score")) or 0.0,
        production_venue_id=_strip_or_none(data.get("production_venue_id")),
        promoted_at=parse_timestamp(data.get("promoted_at")),
        verified_at=parse_timestamp(data.get("verified_at")),
        created_at=parse_timestamp(data.get("created_at")),
    )


def discovered_dish_from_document(data: Dict[str, Any]) -> DiscoveredDish:
    return DiscoveredDish(
        id=data["id"],
        venue_id=data.get("venue_id") or "",
        name=str(data.get("name") or ""),
        venue_name=data.get("venue_name"),
        description=data.get("description") or "",
        planted_product=_strip_or_none(data.get("planted_product")),
        price_by_country=dict(data.get("price_by_country") or {}),
        dietary_tags=list(data.get("dietary_tags") or []),
        status=data.get("status") or DISCOVERED,
        confidence_score=_safe_float(data.get("confidence_score")) or 0.0,
        production_dish_id=_strip_or_none(data.get("production_dish_id")),
        promoted_at=parse_timestamp(data.get("promoted_at")),
        verified_at=parse_timestamp(data.get("verified_at")),
        created_at=parse_timestamp(data.get("created_at")),
    )


def parse_price(value: Any, currency: Optional[str], default_currency: str = "CHF") -> Price:
    """Parse ``"CHF 18.90"``, ``"18.90"``, ``"€15.99"`` or a bare number."""
    fallback = currency or default_currency
    if value is None or value == "":
        return Price(amount=0.0, currency=fallback)
    if isinstance(value, (int, float)):
        return Price(amount=float(value), currency=fallback)

    match = _PRICE_PATTERN.search(str(value))
    if not match:
        return Price(amount=0.0, currency=fallback)

    amount = _safe_float(match.group(2).replace(",", "."))
    symbol = match.group(1)
    if symbol:
        fallback = _CURRENCY_SYMBOLS.get(symbol, symbol)
    return Price(amount=amount if amount is not None else 0.0, currency=fallback)


def parse_price_from_country_map(prices: Optional[Dict[str, Any]], default_currency: str = "CHF") -> Price:
    if not prices:
        return Price(amount=0.0, currency=default_currency)
    first = next(iter(prices.values()))
    return parse_price(first, None, default_currency)


def promotion_source(partner_id: str) -> Dict[str, str]:
    return {"type": "discovered", "partner_id": partner_id}


def new_venue_from_discovered(discovered: DiscoveredVenue, venue_id: str, partner_id: str, now: datetime) -> Venue:
    """Build the production venue written when a discovered venue has no match."""
    return Venue(
        id=venue_id,
        name=discovered.name,
        address=Address(
            city=discovered.address.city,
            country=discovered.address.country,
            street=discovered.address.street,
            postal_code=discovered.address.postal_code,
        ),
        chain_id=discovered.chain_id,
        coordinates=discovered.coordinates,
        delivery_platforms=[DeliveryLink(link.platform, link.url, link.venue_id) for link in discovered.delivery_platforms],
        status=VENUE_ACTIVE,
        last_verified=now,
        created_at=now,
        updated_at=now,
        extra={"type": "restaurant", "source": promotion_source(partner_id)},
    )


def dish_from_embedded(
    embedded: EmbeddedDish,
    *,
    dish_id: str,
    venue_id: str,
    partner_id: str,
    default_currency: str,
    now: datetime,
) -> Dish:
    return Dish(
        id=dish_id,
        venue_id=venue_id,
        name=embedded.name,
        description=embedded.description or "",
        planted_products=[embedded.planted_product or embedded.product_sku or DEFAULT_PLANTED_PRODUCT],
        price=parse_price(embedded.price, embedded.currency, default_currency),
        dietary_tags=list(embedded.dietary_tags),
        status=VENUE_ACTIVE,
        last_verified=now,
        created_at=now,
        updated_at=now,
        extra={"availability": {"type": "permanent"}, "source": promotion_source(partner_id)},
    )


def dish_from_discovered(
    discovered: DiscoveredDish,
    *,
    dish_id: str,
    venue_id: str,
    partner_id: str,
    default_currency: str,
    now: datetime,
) -> Dish:
    return Dish(
        id=dish_id,
        venue_id=venue_id,
        name=discovered.name,
        description=discovered.description or "",
        planted_products=[discovered.planted_product or DEFAULT_PLANTED_PRODUCT],
        price=parse_price_from_country_map(discovered.price_by_country, default_currency),
        dietary_tags=list(discovered.dietary_tags),
        status=VENUE_ACTIVE,
        last_verified=now,
        created_at=now,
        updated_at=now,
        extra={"availability": {"type": "permanent"}, "source": promotion_source(partner_id)},
    )
