"""
Terminal velocity functions for landing prediction.

The landing predictor takes any callable mapping altitude (m) to descent
speed (m/s). Two are provided: a constant rate, and a parachute model
using a simplified International Standard Atmosphere for air density.
"""

import math

from aurora.analytics.landing_prediction import VelocityFunc

GRAVITY = 9.81  # m/s^2
SEA_LEVEL_DENSITY = 1.225  # kg/m^3
SCALE_HEIGHT = 8500.0  # m


def air_density(altitude: float) -> float:
    """Approximate air density (kg/m^3) at altitude in meters."""
    return SEA_LEVEL_DENSITY * math.exp(-altitude / SCALE_HEIGHT)


def constant_descent(rate: float) -> VelocityFunc:
    """Same descent speed at every altitude."""
    def velocity(altitude: float) -> float:
        return rate
    return velocity


def parachute_descent(mass: float, diameter: float, drag_coefficient: float) -> VelocityFunc:
    """
    Terminal velocity of a payload under a round parachute.

    v = sqrt(2 m g / (rho Cd A)), with A the canopy area from its diameter.

    Args:
        mass: Payload mass in kg
        diameter: Parachute diameter in m
        drag_coefficient: Canopy drag coefficient (dimensionless)
    """
    if mass <= 0 or diameter <= 0 or drag_coefficient <= 0:
        raise ValueError('Mass, diameter, and drag coefficient must be positive')

    area = math.pi * (diameter / 2) ** 2

    def velocity(altitude: float) -> float:
        return math.sqrt((2 * mass * GRAVITY) / (air_density(altitude) * drag_coefficient * area))

    return velocity
