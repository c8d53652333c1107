import pytest

from workcafe.services.geo import haversine_km
from workcafe.services.pagination import PageResult


def test_haversine_same_point_is_zero():
    assert haversine_km(45.52, -122.68, 45.52, -122.68) == 0.0


def test_haversine_known_distance():
    # Portland -> Seattle is roughly 234 km as the crow flies
    assert haversine_km(45.5152, -122.6784, 47.6062, -122.3321) == pytest.approx(234, abs=2)


def test_haversine_one_hundredth_degree_latitude():
    assert haversine_km(0.0, 0.0, 0.01, 0.0) == pytest.approx(1.112, abs=0.001)


def test_haversine_antipodes():
    assert haversine_km(0.0, 0.0, 0.0, 180.0) == pytest.approx(20015.1, abs=0.1)


@pytest.mark.parametrize(
    "total,limit,pages",
    [(0, 10, 0), (1, 10, 1), (10, 10, 1), (15, 10, 2), (21, 10, 3)],
)
def test_total_pages_rounds_up(total, limit, pages):
    assert PageResult(items=[], total=total, page=1, limit=limit).total_pages == pages
