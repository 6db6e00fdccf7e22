"""
Elevation service - ground elevation lookups for landing sites.

Wraps the Google Elevation API. Results are cached per exact coordinate
so a landing prediction polled repeatedly for the same position costs one
API call. The cache is bounded; the oldest entries are dropped first.
"""

import logging
import threading
from collections import OrderedDict
from typing import Optional, Tuple

import requests

from aurora.config import ElevationConfig, config

logger = logging.getLogger(__name__)


class ElevationService:
    """
    Google Elevation API client with a bounded coordinate cache.

    Returns None when the API is not configured, fails, or has no result;
    elevation is an optional annotation and never blocks a response.
    """

    def __init__(self, settings: Optional[ElevationConfig] = None, session: Optional[requests.Session] = None):
        settings = settings or config.elevation
        self.api_key = settings.api_key
        self.base_url = settings.base_url
        self.cache_size = settings.cache_size
        self.session = session or requests.Session()

        self._cache: 'OrderedDict[Tuple[float, float], float]' = OrderedDict()
        self._lock = threading.RLock()

        if not self.api_key:
            logger.warning('Google Maps API key not configured - elevation lookups disabled')

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def request(self, latitude: float, longitude: float) -> Optional[float]:
        """Elevation in meters at the coordinate, or None if unavailable."""
        key = (latitude, longitude)

        with self._lock:
            if key in self._cache:
                return self._cache[key]

        if not self.api_key:
            return None

        elevation = self._fetch_from_api(latitude, longitude)
        if elevation is not None:
            self._set_cached(key, elevation)
        return elevation

    def _set_cached(self, key: Tuple[float, float], elevation: float) -> None:
        with self._lock:
            self._cache[key] = elevation
            while len(self._cache) > self.cache_size:
                self._cache.popitem(last=False)

    def _fetch_from_api(self, latitude: float, longitude: float) -> Optional[float]:
        try:
            response = self.session.get(
                self.base_url,
                params={'locations': f'{latitude},{longitude}', 'key': self.api_key},
                timeout=10,
            )

            if response.status_code != 200:
                logger.warning(f'Elevation API error: {response.status_code}')
                return None

            results = response.json().get('results', [])
            if not results:
                logger.debug(f'No elevation found for ({latitude}, {longitude})')
                return None

            return float(results[0]['elevation'])

        except requests.RequestException as e:
            logger.error(f'Failed to fetch elevation: {e}')
            return None
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f'Error parsing elevation response: {e}')
            return None

    def cache_size_used(self) -> int:
        with self._lock:
            return len(self._cache)


# Global service instance
elevation_service = ElevationService()
