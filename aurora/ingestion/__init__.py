"""
Ingestion module for Aurora.

Handles the storage side of telemetry ingestion:
- SQL-backed flight registry and point storage
- Authorized modem list loaded from CSV
"""

from aurora.ingestion.flight_store import SqlFlightStore
from aurora.ingestion.modems import (
    ModemList,
    ModemInfo,
    RedactedModem,
    ModemValidationError,
    ModemLoadError,
)

__all__ = [
    'SqlFlightStore',
    'ModemList',
    'ModemInfo',
    'RedactedModem',
    'ModemValidationError',
    'ModemLoadError',
]
