"""
Database models for Aurora.

Schema designed for balloon telemetry with these priorities:
1. Append-only point ingestion with a uniqueness guard per flight
2. Ordered per-flight range queries for loading and updates
3. Fast lookups of a modem's flight by UTC start date
"""

from aurora.models.base import (
    Base,
    SessionLocal,
    create_db_engine,
    engine,
    init_db,
    make_session_factory,
)
from aurora.models.modem import Modem
from aurora.models.flight_registry import FlightRegistry
from aurora.models.flight_point import FlightPointRecord

__all__ = [
    'Base',
    'engine',
    'SessionLocal',
    'create_db_engine',
    'make_session_factory',
    'init_db',
    'Modem',
    'FlightRegistry',
    'FlightPointRecord',
]
