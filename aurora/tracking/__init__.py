"""
Tracking module for Aurora.

Assembles raw telemetry points into flights:
- Vector math for velocities and positions
- Ordered flight series with incremental statistics
- Assignment of incoming points to today's, a recent, or a new flight
"""

from aurora.tracking.vector import Vector2, weighted_average, round_to_two
from aurora.tracking.flight import Flight, FlightPoint, FlightStats
from aurora.tracking.assigner import (
    FlightAssigner,
    IncomingPoint,
    Assignment,
    AssignmentKind,
    Rejection,
    RejectionReason,
    DuplicatePointError,
)

__all__ = [
    'Vector2',
    'weighted_average',
    'round_to_two',
    'Flight',
    'FlightPoint',
    'FlightStats',
    'FlightAssigner',
    'IncomingPoint',
    'Assignment',
    'AssignmentKind',
    'Rejection',
    'RejectionReason',
    'DuplicatePointError',
]
