"""
Analytics module for Aurora.

Predicts landing positions from a flight's own history:
- Altitude-binned wind model built from per-point velocity vectors
- Interpolation of unsampled altitude blocks
- Descent integration against a terminal velocity function
"""

from aurora.analytics.landing_prediction import (
    LandingPredictor,
    WindModel,
    PredictionNotReadyError,
)
from aurora.analytics.descent import air_density, constant_descent, parachute_descent

__all__ = [
    'LandingPredictor',
    'WindModel',
    'PredictionNotReadyError',
    'air_density',
    'constant_descent',
    'parachute_descent',
]
