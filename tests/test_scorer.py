from catalog_sync.etl.transform import venue_from_document
from catalog_sync.matching import scorer
from catalog_sync.models import Address, Coordinates, DeliveryLink, Venue
from tests.factories import venue_doc

# 0.0009 degrees of latitude is roughly 100 m
_BASE = Coordinates(lat=47.3769, lng=8.5417)


def _venue(venue_id, name="Tibits", street="Bahnhofplatz 1", city="Zurich", lat_offset=0.0, urls=()):
    return Venue(
        id=venue_id,
        name=name,
        address=Address(street=street, city=city, country="CH", postal_code="8001"),
        coordinates=Coordinates(lat=_BASE.lat + lat_offset, lng=_BASE.lng),
        delivery_platforms=[DeliveryLink(platform="uber", url=url) for url in urls],
    )


def test_identical_venues_score_100():
    a = _venue("a", urls=["https://ubereats.com/store/tibits"])
    b = _venue("b", urls=["HTTPS://UBEREATS.COM/store/tibits"])

    result = scorer.score_venues(a, b)

    assert result.total_score == 100
    assert result.address_match and result.platform_url_match
    assert result.coordinate_proximity_m == 0.0


def test_venues_sharing_nothing_score_zero():
    a = _venue("a", name="Tibits", street="Bahnhofplatz 1")
    b = _venue("b", name="Kebab Haus", street="Langstrasse 9", city="Bern", lat_offset=0.5)

    assert scorer.score_venues(a, b).total_score == 0


def test_score_is_symmetric():
    a = _venue("a", name="Hiltl", urls=["https://wolt.com/hiltl"])
    b = _venue("b", name="Hiltl Sihlpost", street="Sihlpost 1", lat_offset=0.002, urls=["https://wolt.com/hiltl"])

    assert scorer.score_venues(a, b).total_score == scorer.score_venues(b, a).total_score


def test_proximity_bands():
    a = _venue("a", name="Alpha", street="A 1")
    at_50m = _venue("b", name="Omega", street="B 2", lat_offset=0.00045)
    at_300m = _venue("c", name="Omega", street="B 2", lat_offset=0.0027)
    at_750m = _venue("d", name="Omega", street="B 2", lat_offset=0.00675)

    assert scorer.score_venues(a, at_50m).total_score == 30
    assert scorer.score_venues(a, at_300m).total_score == 15
    assert scorer.score_venues(a, at_750m).total_score == 0


def test_missing_coordinates_score_no_proximity():
    a = _venue("a")
    b = _venue("b")
    b.coordinates = None

    result = scorer.score_venues(a, b)

    assert result.coordinate_proximity_m == scorer.UNKNOWN_DISTANCE
    assert result.total_score == 45


def test_placeholder_locations_earn_no_proximity_points():
    placeholder = {"latitude": 0, "longitude": 0}
    a = venue_from_document(venue_doc("a", name="Tibits", location=placeholder))
    b = venue_from_document(venue_doc("b", name="Kebab Haus", location=placeholder))

    result = scorer.score_venues(a, b)

    assert result.address_match
    assert result.coordinate_proximity_m == scorer.UNKNOWN_DISTANCE
    assert result.total_score == 40


def test_name_points():
    assert scorer.name_points(0.81) == 5
    assert scorer.name_points(0.8) == 2.5
    assert scorer.name_points(0.6) == 0
