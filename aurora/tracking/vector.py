"""
Two-dimensional vector math for position and velocity calculations.

Vectors are (latitude, longitude) pairs. Velocities are expressed in
degrees per second, displacements and positions in degrees.
"""

from typing import Callable, NamedTuple


def weighted_average(current: float, count: int, to_add: float) -> float:
    """
    Fold one more sample into a running mean.

    `current` is the mean of `count` samples; the result is the mean of
    `count + 1` samples.
    """
    return current * count / (count + 1) + to_add / (count + 1)


def round_to_two(value: float) -> float:
    """Round value to two decimal places."""
    return round(value * 100) / 100


class Vector2(NamedTuple):
    """Immutable (latitude, longitude) vector."""
    lat: float = 0.0
    lng: float = 0.0

    def add(self, other: 'Vector2') -> 'Vector2':
        return Vector2(self.lat + other.lat, self.lng + other.lng)

    def avg(self, other: 'Vector2') -> 'Vector2':
        """Midpoint of this vector and `other`."""
        return Vector2((self.lat + other.lat) / 2, (self.lng + other.lng) / 2)

    def weighted_avg(self, other: 'Vector2', count: int) -> 'Vector2':
        """Treat this vector as the mean of `count` samples and fold `other` in."""
        return Vector2(
            weighted_average(self.lat, count, other.lat),
            weighted_average(self.lng, count, other.lng),
        )

    def map(self, func: Callable[[float], float]) -> 'Vector2':
        """Apply `func` to each component."""
        return Vector2(func(self.lat), func(self.lng))

    def to_dict(self) -> dict:
        return {'lat': self.lat, 'lng': self.lng}

    def __str__(self) -> str:
        return f'Vector2[{self.lat},{self.lng}]'


ZERO_VECTOR = Vector2(0.0, 0.0)
