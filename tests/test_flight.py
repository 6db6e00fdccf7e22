"""Tests for the Flight data model."""

from __future__ import annotations

from datetime import date

import pytest

from aurora.tracking.flight import Flight, FlightStats
from aurora.tracking.vector import ZERO_VECTOR

from tests.conftest import make_point


@pytest.fixture
def abc_flight():
    flight = Flight(uid='abc')
    flight.add(make_point(0, latitude=0.0, longitude=0.0))
    flight.add(make_point(10, latitude=0.01, longitude=0.02))
    flight.add(make_point(20, latitude=0.02, longitude=0.03))
    return flight


class TestAdd:
    def test_returns_index(self):
        flight = Flight(uid='f')
        assert flight.add(make_point(100)) == 0
        assert flight.add(make_point(110)) == 1

    def test_points_stay_sorted(self):
        flight = Flight(uid='f')
        for ts in (5, 10, 30, 31, 100):
            flight.add(make_point(ts))
            timestamps = [p.timestamp for p in flight.points]
            assert timestamps == sorted(timestamps)

    def test_vector_derivation(self, abc_flight):
        a, b, c = abc_flight.points
        assert a.velocity_vector.lat == pytest.approx(0.001)
        assert a.velocity_vector.lng == pytest.approx(0.002)
        assert b.velocity_vector.lat == pytest.approx(0.001)
        assert b.velocity_vector.lng == pytest.approx(0.001)
        assert c.velocity_vector == ZERO_VECTOR

    def test_equal_timestamp_skips_vector(self):
        flight = Flight(uid='f')
        flight.add(make_point(10, latitude=1.0))
        flight.add(make_point(10, latitude=2.0))
        assert flight.get(0).velocity_vector == ZERO_VECTOR
        assert len(flight) == 2

    def test_older_point_rejected(self):
        flight = Flight(uid='f')
        flight.add(make_point(10))
        with pytest.raises(ValueError):
            flight.add(make_point(5))

    def test_start_date_from_first_point(self):
        flight = Flight(uid='f')
        flight.add(make_point(1704067200))  # 2024-01-01T00:00:00Z
        assert flight.start_date == date(2024, 1, 1)


class TestStats:
    def test_avg_ground_speed_idempotent(self):
        flight = Flight(uid='f')
        for ts in range(0, 200, 10):
            flight.add(make_point(ts, ground_speed=17.3))
        assert flight.stats.avg_ground_speed == pytest.approx(17.3)

    def test_extremes(self):
        flight = Flight(uid='f')
        flight.add(make_point(0, altitude=100, vertical_velocity=3.0, ground_speed=5))
        flight.add(make_point(10, altitude=900, vertical_velocity=-8.0, ground_speed=12))
        flight.add(make_point(20, altitude=400, vertical_velocity=6.0, ground_speed=7))

        stats = flight.stats
        assert stats.count == 3
        assert stats.max_altitude == 900
        assert stats.min_altitude == 100
        assert stats.max_ground_speed == 12
        assert stats.max_vertical_velocity == -8.0

    def test_empty_stats(self):
        stats = Flight(uid='f').stats
        assert stats.max_altitude is None
        assert stats.min_altitude is None
        assert stats.count == 0

    def test_bulk_build_matches_incremental(self):
        points = [
            make_point(0, altitude=100, latitude=1.0, longitude=2.0, ground_speed=4.0, vertical_velocity=2.0),
            make_point(10, altitude=300, latitude=1.5, longitude=2.5, ground_speed=6.0, vertical_velocity=-7.0),
            make_point(20, altitude=200, latitude=2.0, longitude=3.0, ground_speed=8.0, vertical_velocity=7.0),
        ]
        incremental = FlightStats()
        for point in points:
            incremental.update(point)
        bulk = FlightStats.build(points)

        assert bulk.count == incremental.count
        assert bulk.max_altitude == incremental.max_altitude
        assert bulk.min_altitude == incremental.min_altitude
        assert bulk.max_vertical_velocity == incremental.max_vertical_velocity == -7.0
        assert bulk.avg_ground_speed == pytest.approx(incremental.avg_ground_speed)
        assert bulk.avg_coordinates.lat == pytest.approx(incremental.avg_coordinates.lat)
        assert bulk.avg_coordinates.lng == pytest.approx(incremental.avg_coordinates.lng)


class TestValidity:
    def test_threshold(self):
        assert not make_point(0, satellites=5).is_valid(5)
        assert make_point(0, satellites=6).is_valid(5)

    def test_first_and_last_valid(self):
        flight = Flight(uid='f')
        flight.add(make_point(0, satellites=2))
        flight.add(make_point(10, satellites=9))
        flight.add(make_point(20, satellites=7))
        flight.add(make_point(30, satellites=1))

        assert flight.first_valid_point().timestamp == 10
        assert flight.last_valid_point().timestamp == 20

    def test_no_valid_points(self):
        flight = Flight(uid='f')
        flight.add(make_point(0, satellites=0))
        assert flight.first_valid_point() is None
        assert flight.last_valid_point() is None
        assert list(flight.valid_points()) == []

    def test_valid_points_restart(self):
        flight = Flight(uid='f')
        for ts in (0, 10, 20):
            flight.add(make_point(ts))
        assert len(list(flight.valid_points())) == 3
        assert len(list(flight.valid_points())) == 3

    def test_valid_points_before(self):
        flight = Flight(uid='f')
        for ts, sats in ((0, 8), (10, 2), (20, 8), (30, 8)):
            flight.add(make_point(ts, satellites=sats))
        before = list(flight.valid_points_before(flight.get(3)))
        assert [p.timestamp for p in before] == [0, 20]

    def test_views_use_valid_points(self):
        flight = Flight(uid='f')
        flight.add(make_point(0, altitude=100, satellites=8))
        flight.add(make_point(10, altitude=200, satellites=1))
        assert flight.altitudes() == [100]
        assert flight.coords() == [{'lat': 45.0, 'lng': -75.0}]
        assert flight.formatted_datetimes() == ['1970-01-01 00:00:00']


class TestIterRange:
    def test_half_open(self, abc_flight):
        assert [p.timestamp for p in abc_flight.iter_range(1, 3)] == [10, 20]
        assert list(abc_flight.iter_range(2, 2)) == []

    @pytest.mark.parametrize('low,high', [(-1, 2), (2, 1), (0, 4)])
    def test_out_of_range(self, abc_flight, low, high):
        with pytest.raises(IndexError):
            abc_flight.iter_range(low, high)


class TestLookup:
    def test_get_by_timestamp(self, abc_flight):
        assert abc_flight.get_by_timestamp(10).latitude == 0.01
        assert abc_flight.get_by_timestamp(15) is None

    def test_index_of(self, abc_flight):
        assert abc_flight.index_of(make_point(20)) == 2
        assert abc_flight.index_of(make_point(25)) is None

    def test_first_last(self, abc_flight):
        assert abc_flight.first_point().timestamp == 0
        assert abc_flight.last_point().timestamp == 20
        assert Flight(uid='empty').last_point() is None


class TestCopy:
    def test_copy_is_independent(self, abc_flight):
        snapshot = abc_flight.copy()
        snapshot.add(make_point(30, latitude=0.05, longitude=0.03))

        assert len(abc_flight) == 3
        assert len(snapshot) == 4
        assert abc_flight.stats.count == 3
        assert snapshot.stats.count == 4
        # The source flight's last point keeps its zero vector
        assert abc_flight.last_point().velocity_vector == ZERO_VECTOR
        assert snapshot.get(2).velocity_vector.lat == pytest.approx(0.003)

    def test_copy_keeps_identity(self, abc_flight):
        snapshot = abc_flight.copy()
        assert snapshot.uid == abc_flight.uid
        assert snapshot.start_date == abc_flight.start_date


class TestFromPoints:
    def test_sorts_and_derives(self):
        flight = Flight.from_points('f', [
            make_point(20, latitude=0.02, longitude=0.03),
            make_point(0, latitude=0.0, longitude=0.0),
            make_point(10, latitude=0.01, longitude=0.02),
        ])
        assert [p.timestamp for p in flight] == [0, 10, 20]
        assert flight.get(0).velocity_vector.lng == pytest.approx(0.002)
        assert flight.get(2).velocity_vector == ZERO_VECTOR
        assert flight.stats.count == 3

    def test_registry_date_wins(self):
        flight = Flight.from_points('f', [make_point(1704153600)], start_date=date(2024, 1, 1))
        assert flight.start_date == date(2024, 1, 1)
