import math

import pytest

from catalog_sync.matching import similarity
from catalog_sync.models import Coordinates


def test_name_similarity_bounds():
    assert similarity.name_similarity("Tibits", "tibits ") == 1.0
    assert similarity.name_similarity("", "") == 1.0
    assert similarity.name_similarity("abc", "xyz") == 0.0


def test_name_similarity_ratio():
    # one substitution over seven characters
    assert similarity.name_similarity("Hiltl A", "Hiltl B") == pytest.approx(1 - 1 / 7)


def test_haversine_known_distance():
    zurich = Coordinates(lat=47.3769, lng=8.5417)
    bern = Coordinates(lat=46.9480, lng=7.4474)

    assert similarity.haversine_km(zurich, bern) == pytest.approx(95.5, abs=1.0)
    assert similarity.haversine_m(zurich, bern) == pytest.approx(similarity.haversine_km(zurich, bern) * 1000)


def test_haversine_identical_and_antipodal_points_are_finite():
    point = Coordinates(lat=10.0, lng=20.0)
    antipode = Coordinates(lat=-10.0, lng=-160.0)

    assert similarity.haversine_m(point, point) == 0.0
    assert similarity.haversine_km(point, antipode) == pytest.approx(math.pi * similarity.EARTH_RADIUS_KM)
