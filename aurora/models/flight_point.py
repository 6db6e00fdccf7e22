"""
FlightPointRecord model - time-series telemetry storage.

Every accepted point is appended here. Points are never updated; velocity
vectors are derived when a flight is loaded rather than stored.

Schema optimized for:
- Append-only inserts from the assignment endpoint
- Ordered range queries per flight (initial load, incremental updates)
- "Active within the last N hours" lookups by timestamp
"""

from sqlalchemy import Float, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from aurora.models.base import Base
from aurora.tracking.flight import FlightPoint


class FlightPointRecord(Base):
    """
    One telemetry sample belonging to a registered flight.

    (uid, timestamp) is unique; a second point with the same timestamp
    for the same flight is rejected by the database.
    """

    __tablename__ = 'flight_points'

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
        comment='Surrogate key'
    )

    # Flight identifier - not a foreign key to avoid insert overhead
    uid: Mapped[str] = mapped_column(
        String(36),
        nullable=False,
        comment='Flight UUID'
    )

    timestamp: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        index=True,
        comment='Unix timestamp of observation'
    )

    latitude: Mapped[float] = mapped_column(Float, nullable=False, comment='Latitude in decimal degrees')
    longitude: Mapped[float] = mapped_column(Float, nullable=False, comment='Longitude in decimal degrees')
    altitude: Mapped[float] = mapped_column(Float, nullable=False, comment='Altitude in meters')

    vertical_velocity: Mapped[float] = mapped_column(Float, default=0.0, comment='Vertical velocity in m/s')
    ground_speed: Mapped[float] = mapped_column(Float, default=0.0, comment='Ground speed in m/s')

    satellites: Mapped[int] = mapped_column(Integer, default=0, comment='GPS satellites in view')
    input_pins: Mapped[int] = mapped_column(Integer, default=0, comment='Input pin bitfield')
    output_pins: Mapped[int] = mapped_column(Integer, default=0, comment='Output pin bitfield')

    __table_args__ = (
        UniqueConstraint('uid', 'timestamp', name='uq_flight_points_uid_timestamp'),
        # Primary query: ordered points of one flight, optionally after a timestamp
        Index('ix_flight_points_uid_time', 'uid', 'timestamp'),
    )

    def __repr__(self) -> str:
        return f'<FlightPointRecord {self.uid} @ {self.timestamp}>'

    @classmethod
    def from_point(cls, uid: str, point: FlightPoint) -> 'FlightPointRecord':
        return cls(
            uid=uid,
            timestamp=point.timestamp,
            latitude=point.latitude,
            longitude=point.longitude,
            altitude=point.altitude,
            vertical_velocity=point.vertical_velocity,
            ground_speed=point.ground_speed,
            satellites=point.satellites,
            input_pins=point.input_pins,
            output_pins=point.output_pins,
        )

    def to_point(self) -> FlightPoint:
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
