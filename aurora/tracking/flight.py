"""
Flight data model - ordered telemetry series with running statistics.

A Flight keeps its points sorted by timestamp and derives a velocity vector
for each point from its successor. Points are immutable: when a successor
arrives, the previous entry of the point list is replaced with a copy that
carries the new vector. Snapshots produced by `Flight.copy()` therefore never
see updates applied to another snapshot.

Statistics are maintained incrementally on every append. Bulk loads compute
the same aggregates in one vectorized NumPy pass.
"""

import bisect
import copy
import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from typing import Iterator, List, Optional, Sequence

import numpy as np

from aurora.tracking.vector import ZERO_VECTOR, Vector2, round_to_two, weighted_average

logger = logging.getLogger(__name__)

DEFAULT_MIN_SATELLITES = 5


@dataclass(frozen=True)
class FlightPoint:
    """
    A single telemetry sample reported by a balloon modem.

    Fields:
        timestamp: Unix seconds (UTC)
        latitude, longitude: WGS84 decimal degrees
        altitude: Meters
        vertical_velocity: m/s (positive = ascending)
        ground_speed: m/s
        satellites: GPS satellites in view
        input_pins: Input pin bitfield (0-15)
        output_pins: Output pin bitfield (0-7)
        velocity_vector: Degrees/second toward the next point in the flight
    """
    timestamp: int
    latitude: float
    longitude: float
    altitude: float
    vertical_velocity: float = 0.0
    ground_speed: float = 0.0
    satellites: int = 0
    input_pins: int = 0
    output_pins: int = 0
    velocity_vector: Vector2 = ZERO_VECTOR

    def is_valid(self, min_satellites: int = DEFAULT_MIN_SATELLITES) -> bool:
        """Point has enough satellites in view to be trusted."""
        return self.satellites > min_satellites

    @property
    def datetime(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp, tz=timezone.utc)

    @property
    def position(self) -> Vector2:
        return Vector2(self.latitude, self.longitude)

    def coords(self) -> dict:
        return {'lat': self.latitude, 'lng': self.longitude, 'alt': self.altitude}

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict for API responses."""
        return {
            'timestamp': self.timestamp,
            'latitude': self.latitude,
            'longitude': self.longitude,
            'altitude': self.altitude,
            'vertical_velocity': self.vertical_velocity,
            'ground_speed': self.ground_speed,
            'satellites': self.satellites,
            'input_pins': self.input_pins,
            'output_pins': self.output_pins,
            'velocity_vector': list(self.velocity_vector),
        }


@dataclass
class FlightStats:
    """
    Running aggregate over every point added to a flight.

    max_vertical_velocity keeps the signed value with the largest magnitude.
    avg_ground_speed is rounded to two decimals after each update.
    avg_coordinates is the unrounded centroid of all positions.
    """
    count: int = 0
    max_altitude: Optional[float] = None
    min_altitude: Optional[float] = None
    max_ground_speed: float = 0.0
    max_vertical_velocity: float = 0.0
    avg_ground_speed: float = 0.0
    avg_coordinates: Vector2 = field(default=ZERO_VECTOR)

    def update(self, point: FlightPoint) -> None:
        """Fold one more point into the aggregate."""
        if self.count == 0:
            self.max_altitude = point.altitude
            self.min_altitude = point.altitude
            self.max_ground_speed = point.ground_speed
            self.max_vertical_velocity = point.vertical_velocity
        else:
            if point.altitude > self.max_altitude:
                self.max_altitude = point.altitude
            if point.altitude < self.min_altitude:
                self.min_altitude = point.altitude
            if point.ground_speed > self.max_ground_speed:
                self.max_ground_speed = point.ground_speed
            if abs(point.vertical_velocity) > abs(self.max_vertical_velocity):
                self.max_vertical_velocity = point.vertical_velocity

        self.avg_ground_speed = round_to_two(
            weighted_average(self.avg_ground_speed, self.count, point.ground_speed)
        )
        self.avg_coordinates = self.avg_coordinates.weighted_avg(point.position, self.count)
        self.count += 1

    @classmethod
    def build(cls, points: Sequence[FlightPoint]) -> 'FlightStats':
        """Compute statistics for a bulk-loaded series in one pass."""
        if not points:
            return cls()

        altitudes = np.array([p.altitude for p in points], dtype=np.float64)
        ground_speeds = np.array([p.ground_speed for p in points], dtype=np.float64)
        vertical = np.array([p.vertical_velocity for p in points], dtype=np.float64)
        latitudes = np.array([p.latitude for p in points], dtype=np.float64)
        longitudes = np.array([p.longitude for p in points], dtype=np.float64)

        return cls(
            count=len(points),
            max_altitude=float(np.max(altitudes)),
            min_altitude=float(np.min(altitudes)),
            max_ground_speed=float(np.max(ground_speeds)),
            # argmax returns the first occurrence, matching the incremental rule
            max_vertical_velocity=float(vertical[np.argmax(np.abs(vertical))]),
            avg_ground_speed=round_to_two(float(np.mean(ground_speeds))),
            avg_coordinates=Vector2(float(np.mean(latitudes)), float(np.mean(longitudes))),
        )

    def to_dict(self) -> dict:
        return {
            'count': self.count,
            'max_altitude': self.max_altitude,
            'min_altitude': self.min_altitude,
            'max_ground_speed': self.max_ground_speed,
            'max_vertical_velocity': self.max_vertical_velocity,
            'avg_ground_speed': self.avg_ground_speed,
            'avg_coordinates': self.avg_coordinates.to_dict(),
        }


def velocity_between(first: FlightPoint, second: FlightPoint) -> Optional[Vector2]:
    """
    Velocity in degrees/second from `first` to `second`.

    Returns None when both points share a timestamp.
    """
    offset_secs = second.timestamp - first.timestamp
    if offset_secs == 0:
        return None
    return Vector2(
        (second.latitude - first.latitude) / offset_secs,
        (second.longitude - first.longitude) / offset_secs,
    )


class Flight:
    """
    Ordered series of telemetry points attributed to one modem and start date.

    Points stay sorted ascending by timestamp. Mutation happens only
    through `add()`, which also keeps velocity vectors and statistics current.
    """

    def __init__(
        self,
        uid: str = '',
        imei: Optional[int] = None,
        start_date: Optional[date] = None,
        min_satellites: int = DEFAULT_MIN_SATELLITES,
    ):
        self.uid = uid
        self.imei = imei
        self.start_date = start_date
        self.min_satellites = min_satellites
        self.stats = FlightStats()
        self._points: List[FlightPoint] = []

    @classmethod
    def from_points(
        cls,
        uid: str,
        points: Sequence[FlightPoint],
        imei: Optional[int] = None,
        start_date: Optional[date] = None,
        min_satellites: int = DEFAULT_MIN_SATELLITES,
    ) -> 'Flight':
        """
        Bulk-load a flight from stored points.

        Points are sorted (stable for equal timestamps), velocity vectors are
        derived pairwise, and statistics are computed in one pass.
        """
        flight = cls(uid=uid, imei=imei, start_date=start_date, min_satellites=min_satellites)
        ordered = sorted(points, key=lambda p: p.timestamp)

        derived = []
        for index, point in enumerate(ordered):
            vector = None
            if index < len(ordered) - 1:
                vector = velocity_between(point, ordered[index + 1])
            derived.append(replace(point, velocity_vector=vector or ZERO_VECTOR))

        flight._points = derived
        flight.stats = FlightStats.build(derived)
        if flight.start_date is None and derived:
            flight.start_date = derived[0].datetime.date()
        return flight

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def add(self, point: FlightPoint) -> int:
        """
        Append a point and return its index.

        The vector from the current last point to the new point is stored
        on the current last point; the new point starts with a zero vector.
        """
        point = replace(point, velocity_vector=ZERO_VECTOR)

        if self._points:
            last_index = len(self._points) - 1
            last = self._points[last_index]
            if point.timestamp < last.timestamp:
                raise ValueError(
                    f'Point at {point.timestamp} is older than last point '
                    f'at {last.timestamp} in flight {self.uid}'
                )
            vector = velocity_between(last, point)
            if vector is None:
                logger.warning(f'Duplicate timestamp {point.timestamp} in flight {self.uid}, vector not updated')
            else:
                self._points[last_index] = replace(last, velocity_vector=vector)
        elif self.start_date is None:
            self.start_date = point.datetime.date()

        self._points.append(point)
        self.stats.update(point)

        return len(self._points) - 1

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    @property
    def points(self) -> List[FlightPoint]:
        """Read-only view of the point sequence."""
        return list(self._points)

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[FlightPoint]:
        return iter(list(self._points))

    def __getitem__(self, index: int) -> FlightPoint:
        return self._points[index]

    def get(self, index: int) -> FlightPoint:
        return self._points[index]

    def first_point(self) -> Optional[FlightPoint]:
        return self._points[0] if self._points else None

    def last_point(self) -> Optional[FlightPoint]:
        return self._points[-1] if self._points else None

    def point_valid(self, point: FlightPoint) -> bool:
        return point.is_valid(self.min_satellites)

    def first_valid_point(self) -> Optional[FlightPoint]:
        return next((p for p in self._points if self.point_valid(p)), None)

    def last_valid_point(self) -> Optional[FlightPoint]:
        return next((p for p in reversed(self._points) if self.point_valid(p)), None)

    def index_of(self, point: FlightPoint) -> Optional[int]:
        """Index of the first point sharing `point`'s timestamp."""
        timestamps = [p.timestamp for p in self._points]
        index = bisect.bisect_left(timestamps, point.timestamp)
        if index < len(timestamps) and timestamps[index] == point.timestamp:
            return index
        return None

    def get_by_timestamp(self, timestamp: int) -> Optional[FlightPoint]:
        index = self.index_of(FlightPoint(timestamp=timestamp, latitude=0.0, longitude=0.0, altitude=0.0))
        return self._points[index] if index is not None else None

    # -------------------------------------------------------------------------
    # Iteration
    # -------------------------------------------------------------------------

    def valid_points(self) -> Iterator[FlightPoint]:
        """Yield valid points in timestamp order. Each call starts over."""
        for point in self._points:
            if self.point_valid(point):
                yield point

    def valid_points_before(self, point: FlightPoint) -> Iterator[FlightPoint]:
        """Yield valid points strictly before `point`."""
        end = self.index_of(point)
        if end is None:
            return
        for candidate in self._points[:end]:
            if self.point_valid(candidate):
                yield candidate

    def iter_range(self, low: int, high: int) -> Iterator[FlightPoint]:
        """
        Iterate raw points over the half-open index range [low, high).

        Raises IndexError if the range falls outside the flight. The check
        runs when this method is called, not on first iteration.
        """
        if low < 0 or low > high or high > len(self._points):
            raise IndexError(f'Index limits [{low},{high}) out of range [0,{len(self._points)})')
        return iter(self._points[low:high])

    # -------------------------------------------------------------------------
    # Views over valid points (chart data, polylines, pin logs)
    # -------------------------------------------------------------------------

    def coords(self) -> List[dict]:
        return [{'lat': p.latitude, 'lng': p.longitude} for p in self.valid_points()]

    def altitudes(self) -> List[float]:
        return [p.altitude for p in self.valid_points()]

    def formatted_datetimes(self) -> List[str]:
        return [p.datetime.strftime('%Y-%m-%d %H:%M:%S') for p in self.valid_points()]

    def pin_states(self) -> List[dict]:
        return [
            {
                'input': p.input_pins,
                'output': p.output_pins,
                'timestamp': p.timestamp,
                'altitude': p.altitude,
            }
            for p in self.valid_points()
        ]

    # -------------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------------

    def copy(self) -> 'Flight':
        """
        Independent snapshot with the same identity.

        The point list is a new container holding the same immutable
        points; statistics are duplicated.
        """
        duplicate = Flight(
            uid=self.uid,
            imei=self.imei,
            start_date=self.start_date,
            min_satellites=self.min_satellites,
        )
        duplicate._points = list(self._points)
        duplicate.stats = copy.deepcopy(self.stats)
        return duplicate

    def to_dict(self) -> dict:
        """JSON-serializable representation with valid points only."""
        return {
            'uid': self.uid,
            'start_date': self.start_date.isoformat() if self.start_date else None,
            'stats': self.stats.to_dict(),
            'points': [p.to_dict() for p in self.valid_points()],
        }

    def __repr__(self) -> str:
        return f'<Flight {self.uid} start={self.start_date} points={len(self._points)}>'
