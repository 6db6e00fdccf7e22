"""
SQL flight store - persistence for flight identities and telemetry points.

Implements the storage protocol used by the flight assigner, plus the read
queries behind the flight, update, and meta endpoints.

Storage pattern:
- flight_registry holds one row per (imei, UTC start date)
- flight_points is append-only; (uid, timestamp) is unique
- Velocity vectors and statistics are derived on load, never stored
"""

import logging
from datetime import date
from typing import Callable, Iterable, List, Optional

from sqlalchemy import and_, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from aurora.config import config
from aurora.models import FlightPointRecord, FlightRegistry
from aurora.models.base import SessionLocal
from aurora.tracking.assigner import DuplicatePointError
from aurora.tracking.flight import Flight, FlightPoint

logger = logging.getLogger(__name__)


class SqlFlightStore:
    """
    Flight storage backed by SQLAlchemy.

    Each call opens and closes its own session, so a store instance can be
    shared across request threads.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        min_satellites: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.min_satellites = (
            min_satellites if min_satellites is not None else config.tracking.min_satellites
        )

    # -------------------------------------------------------------------------
    # Assignment protocol
    # -------------------------------------------------------------------------

    def find_by_identity(self, imei: int, start_date: date) -> Optional[str]:
        with self.session_factory() as session:
            return session.query(FlightRegistry.uid).filter(
                FlightRegistry.imei == imei,
                FlightRegistry.start_date == start_date,
            ).scalar()

    def find_recent_active(self, imei: int, since_timestamp: int) -> Optional[str]:
        """Most recently updated flight of `imei` with a point at or after `since_timestamp`."""
        with self.session_factory() as session:
            return session.query(FlightRegistry.uid).join(
                FlightPointRecord, FlightPointRecord.uid == FlightRegistry.uid
            ).filter(
                FlightRegistry.imei == imei,
                FlightPointRecord.timestamp >= since_timestamp,
            ).order_by(
                FlightPointRecord.timestamp.desc()
            ).limit(1).scalar()

    def create_flight(self, imei: int, start_date: date) -> str:
        """
        Register a flight for (imei, start_date).

        If a concurrent request registered the same identity first, that
        flight's UID is returned instead.
        """
        with self.session_factory() as session:
            registry = FlightRegistry(imei=imei, start_date=start_date)
            session.add(registry)
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                logger.warning(f'Flight for {imei} on {start_date} registered concurrently')
                existing = self.find_by_identity(imei, start_date)
                if existing is None:
                    raise
                return existing

            logger.info(f'Registered flight {registry.uid} for {imei} on {start_date}')
            return registry.uid

    def persist(self, uid: str, point: FlightPoint) -> None:
        """Append a point. Raises DuplicatePointError if its timestamp is taken."""
        with self.session_factory() as session:
            session.add(FlightPointRecord.from_point(uid, point))
            try:
                session.commit()
            except IntegrityError as e:
                session.rollback()
                raise DuplicatePointError(
                    f'Point at {point.timestamp} already stored for flight {uid}'
                ) from e

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_registry(self, uid: str) -> Optional[FlightRegistry]:
        with self.session_factory() as session:
            return session.get(FlightRegistry, uid)

    def load_flight(self, uid: str) -> Optional[Flight]:
        """Load a complete flight, or None if the UID is not registered."""
        registry = self.get_registry(uid)
        if registry is None:
            return None

        points = self.points_since(uid, None)
        logger.debug(f'Loaded {len(points)} points for flight {uid}')
        return Flight.from_points(
            uid,
            points,
            imei=registry.imei,
            start_date=registry.start_date,
            min_satellites=self.min_satellites,
        )

    def points_since(self, uid: str, timestamp: Optional[int]) -> List[FlightPoint]:
        """Points of a flight strictly after `timestamp`, oldest first."""
        with self.session_factory() as session:
            query = session.query(FlightPointRecord).filter(FlightPointRecord.uid == uid)
            if timestamp is not None:
                query = query.filter(FlightPointRecord.timestamp > timestamp)
            records = query.order_by(FlightPointRecord.timestamp).all()
            return [record.to_point() for record in records]

    def count_points(self, uid: str) -> int:
        with self.session_factory() as session:
            return session.query(func.count(FlightPointRecord.id)).filter(
                FlightPointRecord.uid == uid
            ).scalar()

    def last_point(self, uid: str) -> Optional[FlightPoint]:
        with self.session_factory() as session:
            record = session.query(FlightPointRecord).filter(
                FlightPointRecord.uid == uid
            ).order_by(FlightPointRecord.timestamp.desc()).first()
            return record.to_point() if record else None

    def find_uid(self, imei: int, start_date: date) -> Optional[str]:
        return self.find_by_identity(imei, start_date)

    def flights_for_imei(self, imei: int) -> List[dict]:
        """All flights of a modem, newest first."""
        with self.session_factory() as session:
            rows = session.query(FlightRegistry.uid, FlightRegistry.start_date).filter(
                FlightRegistry.imei == imei
            ).order_by(FlightRegistry.start_date.desc()).all()
            return [{'uid': uid, 'date': start.isoformat()} for uid, start in rows]

    def search(
        self,
        imeis: Optional[Iterable[int]] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[dict]:
        """
        Flights matching every given condition, with their first point.

        `imeis` restricts the modems. `start_date` alone matches that day;
        with `end_date` it matches the inclusive range. Flights without
        points are not returned.
        """
        with self.session_factory() as session:
            first = session.query(
                FlightPointRecord.uid.label('uid'),
                func.min(FlightPointRecord.timestamp).label('first_timestamp'),
            ).group_by(FlightPointRecord.uid).subquery()

            query = session.query(
                FlightRegistry.uid,
                FlightRegistry.imei,
                FlightRegistry.start_date,
                FlightPointRecord.timestamp,
                FlightPointRecord.latitude,
                FlightPointRecord.longitude,
            ).join(
                first, first.c.uid == FlightRegistry.uid
            ).join(
                FlightPointRecord,
                and_(
                    FlightPointRecord.uid == first.c.uid,
                    FlightPointRecord.timestamp == first.c.first_timestamp,
                ),
            )

            if imeis is not None:
                query = query.filter(FlightRegistry.imei.in_(list(imeis)))
            if start_date is not None and end_date is not None:
                query = query.filter(FlightRegistry.start_date.between(start_date, end_date))
            elif start_date is not None:
                query = query.filter(FlightRegistry.start_date == start_date)

            rows = query.order_by(FlightRegistry.start_date, FlightRegistry.uid).all()
            return [
                {
                    'uid': uid,
                    'imei': imei,
                    'date': start.isoformat(),
                    'start_point': {
                        'timestamp': timestamp,
                        'latitude': latitude,
                        'longitude': longitude,
                    },
                }
                for uid, imei, start, timestamp, latitude, longitude in rows
            ]

    def active_flights(self, since_timestamp: int) -> List[dict]:
        """
        Flights with a valid point at or after `since_timestamp`.

        Each row carries the position of that flight's newest valid point.
        """
        with self.session_factory() as session:
            latest = session.query(
                FlightPointRecord.uid.label('uid'),
                func.max(FlightPointRecord.timestamp).label('last_timestamp'),
            ).filter(
                FlightPointRecord.timestamp >= since_timestamp,
                FlightPointRecord.satellites > self.min_satellites,
            ).group_by(FlightPointRecord.uid).subquery()

            rows = session.query(
                FlightRegistry.uid,
                FlightRegistry.imei,
                FlightRegistry.start_date,
                FlightPointRecord.timestamp,
                FlightPointRecord.latitude,
                FlightPointRecord.longitude,
                FlightPointRecord.altitude,
            ).join(
                latest, latest.c.uid == FlightRegistry.uid
            ).join(
                FlightPointRecord,
                and_(
                    FlightPointRecord.uid == latest.c.uid,
                    FlightPointRecord.timestamp == latest.c.last_timestamp,
                ),
            ).order_by(
                FlightPointRecord.timestamp.desc()
            ).all()

            return [
                {
                    'uid': uid,
                    'imei': imei,
                    'date': start.isoformat(),
                    'last_timestamp': last,
                    'latitude': latitude,
                    'longitude': longitude,
                    'altitude': altitude,
                }
                for uid, imei, start, last, latitude, longitude, altitude in rows
            ]
