from catalog_sync.matching import address
from catalog_sync.models import Address


def test_normalize_address_ignores_case_and_whitespace():
    a = Address(street="  Bahnhofstrasse 1 ", postal_code="8001", city="ZURICH", country=" ch")
    b = Address(street="bahnhofstrasse 1", postal_code="8001 ", city="zurich", country="CH")

    assert address.normalize_address(a) == "bahnhofstrasse 1|8001|zurich|ch"
    assert address.normalize_address(a) == address.normalize_address(b)
    assert address.normalize_address(a) == address.normalize_address(a)


def test_missing_fields_render_as_empty_segments():
    key = address.normalize_address(Address(city="Bern", country="CH"))
    assert key == "||bern|ch"
    assert "none" not in key
    assert address.normalize_address(None) == "|||"


def test_abbreviations_are_not_expanded():
    street = Address(street="123 Main St", city="Basel", country="CH")
    long_form = Address(street="123 Main Street", city="Basel", country="CH")
    assert not address.addresses_match(street, long_form)


def test_format_address():
    value = Address(street="Sihlstrasse 28", postal_code="8001", city="Zurich", country="CH")
    assert address.format_address(value) == "Sihlstrasse 28, 8001 Zurich, CH"
    assert address.format_address(Address(city="Bern")) == "Bern"


def test_validate_address_accepts_complete_address():
    result = address.validate_address(Address(street="Sihlstrasse 28", city="Zurich", country="CH"))
    assert result.valid is True
    assert result.errors == []


def test_validate_address_reports_every_missing_part():
    result = address.validate_address(Address(street=" ", city="Unknown", country=""))
    assert result.valid is False
    assert result.errors == ["Street address is required", "City is required", "Country is required"]


def test_validate_address_does_not_mutate_input():
    value = Address(street=None, city=" Zurich ", country="CH")
    address.validate_address(value)
    assert value == Address(street=None, city=" Zurich ", country="CH")
