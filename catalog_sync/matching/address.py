"""Address canonicalization and the completeness gate used before promotion."""

from dataclasses import dataclass, field
from typing import List, Optional

from catalog_sync.models import Address

PLACEHOLDER_CITY = "unknown"


def _segment(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def normalize_address(address: Optional[Address]) -> str:
    """Return the comparison key ``street|postal_code|city|country``.

    No token expansion is applied: "123 Main St" and "123 Main Street" stay distinct.
    """
    if address is None:
        return "|||"
    return "|".join(
        (
            _segment(address.street),
            _segment(address.postal_code),
            _segment(address.city),
            _segment(address.country),
        )
    )


def addresses_match(a: Optional[Address], b: Optional[Address]) -> bool:
    return normalize_address(a) == normalize_address(b)


def format_address(address: Address) -> str:
    """Human readable form: ``street, postal city, country``."""
    parts: List[str] = []
    if address.street:
        parts.append(address.street)
    city_part = " ".join(filter(None, [address.postal_code, address.city]))
    if city_part:
        parts.append(city_part)
    if address.country:
        parts.append(address.country)
    return ", ".join(parts)


@dataclass(slots=True)
class AddressValidation:
    valid: bool
    errors: List[str] = field(default_factory=list)


def validate_address(address: Optional[Address]) -> AddressValidation:
    """Check that an address is complete enough to promote. Never mutates its input."""
    address = address or Address()
    errors: List[str] = []
    if not _segment(address.street):
        errors.append("Street address is required")
    city = _segment(address.city)
    if not city or city == PLACEHOLDER_CITY:
        errors.append("City is required")
    if not _segment(address.country):
        errors.append("Country is required")
    return AddressValidation(valid=not errors, errors=errors)
