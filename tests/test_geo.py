"""Tests for geometry helpers."""
import pytest

from eplq.shared.geo import (
    approximate_region,
    bounding_box,
    format_distance,
    haversine_distance_km,
)
from eplq.shared.protocol import Region

from conftest import LONDON, PARIS, point_north


class TestHaversine:
    """Test great-circle distance."""

    def test_same_point(self):
        assert haversine_distance_km(0, 0, 0, 0) == 0
        assert haversine_distance_km(*LONDON, *LONDON) == 0

    def test_london_paris(self):
        """London to Paris is about 343.5 km."""
        assert haversine_distance_km(*LONDON, *PARIS) == pytest.approx(343.5, rel=0.01)

    def test_symmetric(self):
        assert haversine_distance_km(*LONDON, *PARIS) == pytest.approx(
            haversine_distance_km(*PARIS, *LONDON)
        )

    def test_meridian_distance(self):
        """Moving along a meridian gives exactly the requested distance."""
        lat, lon = point_north(*LONDON, 10.0)
        assert haversine_distance_km(*LONDON, lat, lon) == pytest.approx(10.0, abs=1e-9)

    def test_antipodal(self):
        """Half the circumference between antipodes."""
        assert haversine_distance_km(0, 0, 0, 180) == pytest.approx(20015.09, rel=1e-4)


class TestApproximateRegion:
    """Test 0.1 degree region rounding."""

    def test_london(self):
        assert approximate_region(51.5074, -0.1278) == (51.5, -0.1)

    def test_returns_region(self):
        region = approximate_region(51.5074, -0.1278)
        assert isinstance(region, Region)
        assert region.lat == 51.5
        assert region.lng == -0.1

    @pytest.mark.parametrize("value,expected", [
        (51.05, 51.1),
        (-0.15, -0.2),
        (0.25, 0.3),
        (-0.25, -0.3),
        (0.04, 0.0),
        (-0.04, -0.0),
        (89.96, 90.0),
        (-179.96, -180.0),
    ])
    def test_half_away_from_zero(self, value, expected):
        """Halves round away from zero in both directions."""
        assert approximate_region(value, value) == (expected, expected)

    def test_never_finer_than_grid(self):
        """Every rounded coordinate sits on the 0.1 degree grid."""
        for lat, lon in [(12.3456, 98.7654), (-33.8688, 151.2093), (40.7128, -74.006)]:
            region = approximate_region(lat, lon)
            assert round(region.lat * 10) == pytest.approx(region.lat * 10)
            assert round(region.lng * 10) == pytest.approx(region.lng * 10)
            assert abs(region.lat - lat) <= 0.05 + 1e-9
            assert abs(region.lng - lon) <= 0.05 + 1e-9


class TestBoundingBox:
    """Test the advisory degree box."""

    def test_equator(self):
        """111 km is one degree each way at the equator."""
        box = bounding_box(0.0, 0.0, 111.0)
        assert box.min_lat == pytest.approx(-1.0)
        assert box.max_lat == pytest.approx(1.0)
        assert box.min_lng == pytest.approx(-1.0)
        assert box.max_lng == pytest.approx(1.0)

    def test_longitude_widens_toward_poles(self):
        """At 60 degrees a km spans twice the longitude."""
        box = bounding_box(60.0, 10.0, 111.0)
        assert box.max_lat - 60.0 == pytest.approx(1.0)
        assert box.max_lng - 10.0 == pytest.approx(2.0)
        assert 10.0 - box.min_lng == pytest.approx(2.0)

    def test_southern_hemisphere(self):
        box = bounding_box(-45.0, 170.0, 50.0)
        assert box.min_lat < -45.0 < box.max_lat
        assert box.min_lng < 170.0 < box.max_lng
        assert box.contains(-45.0, 170.0)


class TestFormatDistance:
    """Test display formatting."""

    def test_meters_below_one_km(self):
        assert format_distance(0.85) == "850m"
        assert format_distance(0.0) == "0m"

    def test_kilometers(self):
        assert format_distance(1.0) == "1.00km"
        assert format_distance(12.3456) == "12.35km"
