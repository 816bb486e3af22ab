"""Document builders shared by the service and HTTP tests."""

from catalog_sync.core.config import Settings


def make_settings(**overrides):
    values = {"database_url": "", "catalog_backend": "memory"}
    values.update(overrides)
    return Settings(**values)


def venue_doc(venue_id, name="Tibits", street="Bahnhofplatz 1", city="Zurich", country="CH", **extra):
    doc = {
        "id": venue_id,
        "name": name,
        "address": {"street": street, "city": city, "postal_code": "8001", "country": country},
        "delivery_platforms": [],
        "status": "active",
        "created_at": "2024-01-01T00:00:00+00:00",
    }
    doc.update(extra)
    return doc


def discovered_venue_doc(venue_id, name="Hiltl", street="Sihlstrasse 28", city="Zurich", country="CH", **extra):
    doc = {
        "id": venue_id,
        "name": name,
        "address": {"street": street, "city": city, "postal_code": "8001", "country": country},
        "delivery_platforms": [],
        "dishes": [],
        "status": "verified",
        "confidence_score": 0.9,
        "created_at": "2024-02-01T00:00:00+00:00",
    }
    doc.update(extra)
    return doc


def discovered_dish_doc(dish_id, venue_id, name="Planted Kebab", **extra):
    doc = {
        "id": dish_id,
        "venue_id": venue_id,
        "name": name,
        "planted_product": "planted.kebab",
        "price_by_country": {"CH": "CHF 21.50"},
        "status": "verified",
        "confidence_score": 0.8,
        "created_at": "2024-02-02T00:00:00+00:00",
    }
    doc.update(extra)
    return doc
