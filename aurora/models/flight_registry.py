"""
FlightRegistry model - one row per flight.

A flight is identified by an opaque UUID and anchored to the modem and
the UTC date of its first point. The (imei, start_date) pair is unique:
a modem starts at most one flight per UTC day.
"""

import uuid
from datetime import date, datetime, timezone

from sqlalchemy import BigInteger, Date, DateTime, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from aurora.models.base import Base


def generate_uid() -> str:
    return str(uuid.uuid4())


class FlightRegistry(Base):
    """Registered flight identity."""

    __tablename__ = 'flight_registry'

    uid: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=generate_uid,
        comment='Flight UUID'
    )

    imei: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        index=True,
        comment='Modem IMEI'
    )

    start_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        index=True,
        comment='UTC date of the first point'
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        comment='Record creation timestamp'
    )

    __table_args__ = (
        UniqueConstraint('imei', 'start_date', name='uq_flight_registry_imei_date'),
    )

    def __repr__(self) -> str:
        return f'<FlightRegistry {self.uid} imei={self.imei} {self.start_date}>'
