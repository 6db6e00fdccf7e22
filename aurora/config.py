"""
Configuration management for Aurora.

Loads settings from environment variables with sensible defaults.
All thresholds used by the tracking and prediction core live here and are
passed into the components at construction time.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class TrackingConfig:
    """Flight assembly and point validation settings."""
    # A point is valid when satellites > min_satellites (at least 6 by default)
    min_satellites: int = int(os.getenv('MIN_SATELLITES', '5'))
    min_altitude: float = float(os.getenv('MIN_ALTITUDE', '-86'))
    max_altitude: float = float(os.getenv('MAX_ALTITUDE', '60000'))

    # Window for stitching points onto a flight across the UTC day boundary
    contig_flight_delta_hrs: float = float(os.getenv('CONTIG_FLIGHT_DELTA_HRS', '2'))

    # Flights with a point in this window show up as active
    active_flight_delta_hrs: float = float(os.getenv('ACTIVE_FLIGHT_DELTA_HRS', '12'))

    # Number of IMEI digits exposed to clients
    exposed_imei_digits: int = 5


@dataclass(frozen=True)
class PredictionConfig:
    """Landing prediction settings."""
    altitude_block_size: int = int(os.getenv('ALTITUDE_BLOCK_SIZE', '150'))
    max_speed: float = 6.0386e-4  # degrees/s, close to 150 mph
    default_descent_rate: float = float(os.getenv('DEFAULT_DESCENT_RATE', '5.0'))


@dataclass(frozen=True)
class DatabaseConfig:
    """Database configuration."""
    url: str = os.getenv('DATABASE_URL', 'sqlite:///aurora.db')

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith('sqlite')

    @property
    def is_memory(self) -> bool:
        return self.url in ('sqlite://', 'sqlite:///:memory:')


@dataclass(frozen=True)
class ModemConfig:
    """Authorized modem list settings."""
    csv_path: Optional[str] = os.getenv('MODEMS_CSV') or None


@dataclass(frozen=True)
class ElevationConfig:
    """Google elevation API configuration."""
    api_key: Optional[str] = os.getenv('GOOGLE_MAPS_API_KEY') or None
    base_url: str = 'https://maps.googleapis.com/maps/api/elevation/json'
    cache_size: int = 100

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)


@dataclass(frozen=True)
class CacheConfig:
    """In-memory flight cache settings."""
    max_entries: int = int(os.getenv('CACHE_MAX_FLIGHTS', '50'))


@dataclass(frozen=True)
class AppConfig:
    """Main application configuration."""
    tracking: TrackingConfig
    prediction: PredictionConfig
    database: DatabaseConfig
    modems: ModemConfig
    elevation: ElevationConfig
    cache: CacheConfig

    # Flask settings
    secret_key: str
    debug: bool


def load_config() -> AppConfig:
    """Load and validate all configuration."""
    return AppConfig(
        tracking=TrackingConfig(),
        prediction=PredictionConfig(),
        database=DatabaseConfig(),
        modems=ModemConfig(),
        elevation=ElevationConfig(),
        cache=CacheConfig(),
        secret_key=os.getenv('SECRET_KEY', 'dev-key-change-in-prod'),
        debug=os.getenv('FLASK_DEBUG', '0') == '1',
    )


# Singleton instance
config = load_config()
