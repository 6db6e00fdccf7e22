"""Tests for the wind model and landing prediction."""

from __future__ import annotations

import math

import pytest

from aurora.analytics import (
    LandingPredictor,
    PredictionNotReadyError,
    WindModel,
    constant_descent,
)
from aurora.tracking.flight import Flight
from aurora.tracking.vector import Vector2

from tests.conftest import make_point


def ascending_flight(steps=10, lat_step=0.001, alt_step=100.0, interval=10):
    """Balloon drifting north at a constant rate while climbing."""
    flight = Flight(uid='ascent')
    for i in range(steps):
        flight.add(make_point(
            i * interval,
            latitude=45.0 + i * lat_step,
            longitude=-75.0,
            altitude=i * alt_step,
        ))
    return flight


class TestWindModel:
    def test_block_floor(self):
        model = WindModel(150)
        assert model.block_for(0) == 0
        assert model.block_for(149.9) == 0
        assert model.block_for(150) == 150
        assert model.block_for(-10) == -150

    def test_running_mean(self):
        model = WindModel(150)
        model.add_sample(0, Vector2(1, 0))
        model.add_sample(0, Vector2(0, 1))
        model.add_sample(0, Vector2(2, 2))
        assert model.get(0) == pytest.approx((1.0, 1.0))
        assert model.sample_counts[0] == 3

    def test_missing_block_is_calm(self):
        assert WindModel(150).get(300) == (0.0, 0.0)


class TestFixBlocks:
    def test_interpolates_between_known_blocks(self):
        predictor = LandingPredictor(Flight(uid='f'))
        predictor.model.add_sample(0, Vector2(1, 0))
        predictor.model.add_sample(600, Vector2(0, 1))

        filled = predictor.fix_blocks(0, 600)

        assert filled == 3
        assert predictor.model.get(150) == pytest.approx((0.5, 0.5))
        assert predictor.model.get(300) == pytest.approx((0.25, 0.75))
        assert predictor.model.get(450) == pytest.approx((0.125, 0.875))

    def test_endpoints_order_independent(self):
        predictor = LandingPredictor(Flight(uid='f'))
        predictor.model.add_sample(0, Vector2(1, 0))
        predictor.model.add_sample(300, Vector2(0, 1))
        predictor.fix_blocks(300, 0)
        assert predictor.model.get(150) == pytest.approx((0.5, 0.5))

    def test_set_lowest(self):
        predictor = LandingPredictor(Flight(uid='f'))
        predictor.model.add_sample(150, Vector2(1, 0))
        predictor.fix_blocks(160, None)
        assert predictor.model.lowest_block is None
        predictor.fix_blocks(160, None, set_lowest=True)
        assert predictor.model.lowest_block == 150

    def test_sample_replaces_interpolation(self):
        predictor = LandingPredictor(Flight(uid='f'))
        predictor.model.add_sample(0, Vector2(1, 0))
        predictor.model.add_sample(300, Vector2(0, 1))
        predictor.fix_blocks(0, 300)

        predictor.model.add_sample(150, Vector2(4, 4))
        assert predictor.model.get(150) == (4, 4)


class TestBuildProfile:
    def test_builds_from_flight(self):
        flight = ascending_flight()
        predictor = LandingPredictor(flight, constant_descent(5.0))
        predictor.build_altitude_profile()

        assert predictor.is_ready
        assert predictor.model.lowest_block == 0
        # Every block from 0 to 750 has a sample; the final point at 900 has no vector yet
        assert predictor.model.populated_blocks() == [0, 150, 300, 450, 600, 750]
        for block in predictor.model.populated_blocks():
            assert predictor.model.get(block).lat == pytest.approx(0.0001)
            assert predictor.model.get(block).lng == pytest.approx(0.0)

    def test_skips_invalid_and_outliers(self):
        flight = Flight(uid='f')
        flight.add(make_point(0, latitude=0.0, altitude=0, satellites=2))
        flight.add(make_point(10, latitude=0.001, altitude=200))
        flight.add(make_point(20, latitude=1.0, altitude=400))  # glitch: 0.1 deg/s
        flight.add(make_point(30, latitude=1.001, altitude=600))
        flight.add(make_point(40, latitude=1.002, altitude=800))

        predictor = LandingPredictor(flight)
        folded = predictor.build_profile(0, len(flight))

        # point 0 invalid, point 1 outlier vector, point 4 is last
        assert folded == 2
        assert 0 not in predictor.model
        assert 150 not in predictor.model

    def test_range_errors(self):
        predictor = LandingPredictor(ascending_flight(steps=3))
        with pytest.raises(IndexError):
            predictor.build_profile(-1, 2)
        with pytest.raises(IndexError):
            predictor.build_profile(0, 4)

    def test_empty_flight(self):
        with pytest.raises(PredictionNotReadyError):
            LandingPredictor(Flight(uid='empty')).build_altitude_profile()

    def test_incremental_update_matches_full_build(self):
        full = ascending_flight(steps=12)

        partial = Flight(uid='ascent')
        for point in full.points[:6]:
            partial.add(point)
        predictor = LandingPredictor(partial)
        predictor.build_altitude_profile()

        updated = partial.copy()
        for point in full.points[6:]:
            updated.add(point)
        predictor.load(updated)
        predictor.update_altitude_profile(6, len(updated) - 1)

        reference = LandingPredictor(full)
        reference.build_altitude_profile()

        assert predictor.model.populated_blocks() == reference.model.populated_blocks()
        for block in reference.model.populated_blocks():
            assert predictor.model.get(block) == pytest.approx(reference.model.get(block))
            assert predictor.model.sample_counts.get(block) == reference.model.sample_counts.get(block)


class TestCalculateLanding:
    def test_constant_wind(self):
        predictor = LandingPredictor(Flight(uid='f'), constant_descent(1.0))
        predictor.model.add_sample(0, Vector2(0.0001, 0))
        predictor.model.add_sample(150, Vector2(0.0001, 0))
        predictor.model.add_sample(300, Vector2(0.0001, 0))
        predictor.model.lowest_block = 0

        landing = predictor.calculate_landing(make_point(0, latitude=45.0, longitude=-75.0, altitude=300))

        assert landing.lat == pytest.approx(45.03)
        assert landing.lng == -75.0

    def test_partial_top_block(self):
        predictor = LandingPredictor(Flight(uid='f'), constant_descent(1.0))
        predictor.model.add_sample(0, Vector2(0.0001, 0))
        predictor.model.add_sample(150, Vector2(0.0001, 0))
        predictor.model.lowest_block = 0

        landing = predictor.calculate_landing(make_point(0, latitude=0.0, longitude=0.0, altitude=225))
        assert landing.lat == pytest.approx(0.0001 * 225)

    def test_signed_speed_function(self):
        predictor = LandingPredictor(Flight(uid='f'), lambda altitude: -2.0)
        predictor.model.add_sample(0, Vector2(0, 0.0002))
        predictor.model.lowest_block = 0

        landing = predictor.calculate_landing(make_point(0, latitude=0.0, longitude=0.0, altitude=150))
        assert landing.lng == pytest.approx(0.0002 * 75)

    def test_zero_speed_stays_finite(self):
        predictor = LandingPredictor(Flight(uid='f'), lambda altitude: 0.0)
        predictor.model.add_sample(0, Vector2(0.0001, 0))
        predictor.model.lowest_block = 0

        landing = predictor.calculate_landing(make_point(0, latitude=0.0, longitude=0.0, altitude=100))
        assert math.isfinite(landing.lat)
        assert landing.lat > 0

    def test_not_built(self):
        predictor = LandingPredictor(Flight(uid='f'), constant_descent(1.0))
        with pytest.raises(PredictionNotReadyError):
            predictor.calculate_landing(make_point(0))

    def test_no_velocity_function(self):
        predictor = LandingPredictor(Flight(uid='f'))
        predictor.model.lowest_block = 0
        with pytest.raises(PredictionNotReadyError):
            predictor.calculate_landing(make_point(0))

    def test_drift_follows_wind(self):
        flight = ascending_flight()
        predictor = LandingPredictor(flight, constant_descent(5.0))
        predictor.build_altitude_profile()

        top = flight.last_point()
        landing = predictor.calculate_landing(top)

        # 900 m at 5 m/s is 180 s of drift at 0.0001 deg/s northward
        assert landing.lat == pytest.approx(top.latitude + 0.018)
        assert landing.lng == pytest.approx(top.longitude)
