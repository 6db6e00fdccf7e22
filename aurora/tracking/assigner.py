"""
Flight assignment - decides which flight an incoming telemetry point joins.

Assignment order for a point that passes validation:

1. today:   a flight exists for (imei, UTC date of the point)
2. recent:  a flight for this imei has a point newer than
            now - contig_flight_delta_hrs (stitches flights across
            UTC midnight onto the previous day's flight)
3. created: otherwise a new flight is registered for
            (imei, UTC date of the point)

The recent window is anchored to the current wall-clock time, not to the
gap between the incoming point and the flight's last point.

Rejections (altitude bounds, unauthorized modem, malformed payload,
duplicate timestamp) are returned as values, never raised.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Optional, Protocol, Union

from aurora.config import TrackingConfig
from aurora.tracking.flight import FlightPoint

logger = logging.getLogger(__name__)

# Wire format used by the dispatch server
DATETIME_FORMATS = ('%Y-%m-%dT%H:%M:%S.%fZ', '%Y-%m-%dT%H:%M:%SZ', '%Y-%m-%d %H:%M:%S')


class DuplicatePointError(Exception):
    """A point with the same timestamp already exists in the flight."""


class ModemRegistry(Protocol):
    """Authorized modem lookup."""

    def has(self, imei: int) -> bool:
        ...


class FlightStore(Protocol):
    """Persistent flight storage used during assignment."""

    def find_by_identity(self, imei: int, start_date: date) -> Optional[str]:
        """UID of the flight registered for (imei, start_date), if any."""
        ...

    def find_recent_active(self, imei: int, since_timestamp: int) -> Optional[str]:
        """UID of a flight for imei with a point at or after since_timestamp."""
        ...

    def create_flight(self, imei: int, start_date: date) -> str:
        """Register a new flight and return its UID."""
        ...

    def persist(self, uid: str, point: FlightPoint) -> None:
        """Store a point. Raises DuplicatePointError on (uid, timestamp) conflict."""
        ...


class AssignmentKind(str, Enum):
    """How an incoming point was attached to a flight."""
    TODAY = 'today'
    RECENT = 'recent'
    CREATED = 'created'


class RejectionReason(str, Enum):
    """Why an incoming point was not stored."""
    MALFORMED = 'malformed'
    ALTITUDE_TOO_LOW = 'altitude_too_low'
    ALTITUDE_TOO_HIGH = 'altitude_too_high'
    UNAUTHORIZED_MODEM = 'unauthorized_modem'
    DUPLICATE_POINT = 'duplicate_point'


@dataclass(frozen=True)
class Assignment:
    """Point stored in flight `uid`."""
    uid: str
    kind: AssignmentKind

    def to_dict(self) -> dict:
        return {'status': 'success', 'type': self.kind.value, 'flight': self.uid}


@dataclass(frozen=True)
class Rejection:
    """Point refused; processing of this point stops."""
    reason: RejectionReason
    message: str

    @property
    def is_constraint_violation(self) -> bool:
        return self.reason is RejectionReason.DUPLICATE_POINT

    def to_dict(self) -> dict:
        return {'status': 'error', 'reason': self.reason.value, 'data': self.message}


AssignmentResult = Union[Assignment, Rejection]


@dataclass(frozen=True)
class IncomingPoint:
    """A telemetry point as received from the dispatch server."""
    imei: int
    datetime: datetime
    latitude: float
    longitude: float
    altitude: float
    vertical_velocity: float
    ground_speed: float
    satellites: int
    input_pins: int
    output_pins: int

    @property
    def timestamp(self) -> int:
        return int(self.datetime.timestamp())

    @property
    def utc_date(self) -> date:
        return self.datetime.astimezone(timezone.utc).date()

    def to_flight_point(self) -> FlightPoint:
        return FlightPoint(
            timestamp=self.timestamp,
            latitude=self.latitude,
            longitude=self.longitude,
            altitude=self.altitude,
            vertical_velocity=self.vertical_velocity,
            ground_speed=self.ground_speed,
            satellites=self.satellites,
            input_pins=self.input_pins,
            output_pins=self.output_pins,
        )

    @classmethod
    def from_payload(cls, payload: dict) -> 'IncomingPoint':
        """
        Parse a dispatch server point payload.

        Raises ValueError if a field is missing or malformed.
        """
        if not isinstance(payload, dict):
            raise ValueError('Point payload must be an object')

        try:
            imei = int(str(payload['imei']).strip())
            raw_datetime = payload['datetime']
            fields = {
                'latitude': float(payload['latitude']),
                'longitude': float(payload['longitude']),
                'altitude': float(payload['altitude']),
                'vertical_velocity': float(payload['vertical_velocity']),
                'ground_speed': float(payload['ground_speed']),
                'satellites': int(payload['satellites']),
                'input_pins': int(payload['input_pins']),
                'output_pins': int(payload['output_pins']),
            }
        except KeyError as e:
            raise ValueError(f'Missing field {e.args[0]}') from e
        except (TypeError, ValueError) as e:
            raise ValueError(f'Invalid field value: {e}') from e

        return cls(imei=imei, datetime=parse_datetime(raw_datetime), **fields)


def parse_datetime(value) -> datetime:
    """Parse a UTC datetime from the wire format or Unix seconds."""
    if isinstance(value, bool):
        raise ValueError(f'Invalid datetime {value!r}')
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, str):
        for fmt in DATETIME_FORMATS:
            try:
                return datetime.strptime(value, fmt).replace(tzinfo=timezone.utc)
            except ValueError:
                continue
    raise ValueError(f'Invalid datetime {value!r}')


class FlightAssigner:
    """
    Assigns incoming points to flights.

    Stateless apart from its collaborators; the same point against the
    same store contents and clock always yields the same outcome.
    """

    def __init__(
        self,
        store: FlightStore,
        modems: ModemRegistry,
        tracking: Optional[TrackingConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        tracking = tracking or TrackingConfig()
        self.store = store
        self.modems = modems
        self.min_altitude = tracking.min_altitude
        self.max_altitude = tracking.max_altitude
        self.contig_flight_delta = timedelta(hours=tracking.contig_flight_delta_hrs)
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def validate(self, point: IncomingPoint) -> Optional[Rejection]:
        """Return a rejection if the point must not be stored."""
        if point.altitude < self.min_altitude:
            return Rejection(
                RejectionReason.ALTITUDE_TOO_LOW,
                f'Altitude invalid: below {self.min_altitude:g}m, flight point rejected',
            )
        if point.altitude > self.max_altitude:
            return Rejection(
                RejectionReason.ALTITUDE_TOO_HIGH,
                f'Altitude invalid: above {self.max_altitude:g}m, flight point rejected',
            )
        if not self.modems.has(point.imei):
            return Rejection(
                RejectionReason.UNAUTHORIZED_MODEM,
                f'Modem IMEI {point.imei} not in allowed list, datapoint rejected',
            )
        return None

    def assign_payload(self, payload: dict) -> AssignmentResult:
        """Parse a raw payload and assign it."""
        try:
            point = IncomingPoint.from_payload(payload)
        except ValueError as e:
            logger.info(f'Rejected point: malformed payload ({e})')
            return Rejection(RejectionReason.MALFORMED, f'Flight point fields are incorrectly formatted: {e}')
        return self.assign(point)

    def assign(self, point: IncomingPoint) -> AssignmentResult:
        """Validate the point, then attach it to today's, a recent, or a new flight."""
        rejection = self.validate(point)
        if rejection:
            logger.info(f'Rejected point from {point.imei}: {rejection.reason.value}')
            return rejection

        uid = self.store.find_by_identity(point.imei, point.utc_date)
        if uid is not None:
            return self._persist(uid, point, AssignmentKind.TODAY)

        since = int((self.clock() - self.contig_flight_delta).timestamp())
        uid = self.store.find_recent_active(point.imei, since)
        if uid is not None:
            return self._persist(uid, point, AssignmentKind.RECENT)

        logger.info(f'IMEI {point.imei} new flight creation')
        uid = self.store.create_flight(point.imei, point.utc_date)
        return self._persist(uid, point, AssignmentKind.CREATED)

    def _persist(self, uid: str, point: IncomingPoint, kind: AssignmentKind) -> AssignmentResult:
        try:
            self.store.persist(uid, point.to_flight_point())
        except DuplicatePointError:
            logger.info(f'Rejected point at {point.timestamp} for flight {uid}: duplicate timestamp')
            return Rejection(
                RejectionReason.DUPLICATE_POINT,
                'flight point violates unique constraint, rejected',
            )

        logger.debug(f'Assigned point at {point.timestamp} to flight {uid} ({kind.value})')
        return Assignment(uid=uid, kind=kind)
