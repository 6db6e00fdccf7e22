"""
In-memory cache of assembled flights and their landing predictors.

Loading a flight means reading every stored point, deriving velocity
vectors, and building a wind model. The cache keeps that work for recently
viewed flights so polling clients only pay for the points added since their
last request.

Update scheme:
A refresh never mutates the cached Flight. New points are appended to a
`Flight.copy()`, the predictor is pointed at the copy and extended, and
only then is the cache entry swapped to the copy. Readers holding the
previous snapshot keep a consistent view.

A point persisted out of order (older than the cached last point) cannot
be appended. The refresh notices the stored count no longer matches and
rebuilds the flight and its predictor from the store instead.

Locking:
`_lock` only guards the entry map and statistics and is never held during
database reads. Loads, refreshes and landing calculations for one flight
serialize on that flight's own lock, since predictors are not safe for
concurrent updates.
"""

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from aurora.analytics.landing_prediction import LandingPredictor, VelocityFunc
from aurora.config import PredictionConfig, config
from aurora.ingestion.flight_store import SqlFlightStore
from aurora.tracking.flight import Flight, FlightPoint
from aurora.tracking.vector import Vector2

logger = logging.getLogger(__name__)


@dataclass
class CachedFlight:
    """A flight snapshot with the predictor built from it."""
    flight: Flight
    predictor: LandingPredictor
    cached_at: float = field(default_factory=time.time)
    last_access: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        return {
            'uid': self.flight.uid,
            'points': len(self.flight),
            'wind_blocks': len(self.predictor.model),
            'cached_at': self.cached_at,
        }


class FlightCache:
    """
    Thread-safe cache of flights keyed by UID.

    Bounded by `max_entries`; the least recently accessed flight is
    evicted first.
    """

    def __init__(
        self,
        store: Optional[SqlFlightStore] = None,
        max_entries: Optional[int] = None,
        prediction: Optional[PredictionConfig] = None,
    ):
        self.store = store or SqlFlightStore()
        self.max_entries = max_entries or config.cache.max_entries
        self.prediction = prediction or config.prediction

        # Ordered by last access, oldest first
        self._cache: 'OrderedDict[str, CachedFlight]' = OrderedDict()
        self._flight_locks: Dict[str, threading.RLock] = {}
        self._lock = threading.RLock()

        # Statistics
        self._hits = 0
        self._misses = 0

    def _flight_lock(self, uid: str) -> threading.RLock:
        with self._lock:
            lock = self._flight_locks.get(uid)
            if lock is None:
                lock = self._flight_locks[uid] = threading.RLock()
            return lock

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def _lookup(self, uid: str) -> Optional[CachedFlight]:
        with self._lock:
            entry = self._cache.get(uid)
            if entry is not None:
                entry.last_access = time.time()
                self._cache.move_to_end(uid)
            return entry

    def get(self, uid: str) -> Optional[CachedFlight]:
        """Cached entry for a flight, loading it from the store on a miss."""
        entry = self._lookup(uid)
        if entry is not None:
            with self._lock:
                self._hits += 1
            return entry

        with self._flight_lock(uid):
            # Another request may have loaded it while we waited
            entry = self._lookup(uid)
            if entry is not None:
                with self._lock:
                    self._hits += 1
                return entry

            with self._lock:
                self._misses += 1

            flight = self.store.load_flight(uid)
            if flight is None:
                return None

            entry = CachedFlight(flight=flight, predictor=self._build_predictor(flight))
            self._insert(uid, entry)

            logger.debug(f'Cached flight {uid} with {len(flight)} points')
            return entry

    def get_flight(self, uid: str) -> Optional[Flight]:
        entry = self.get(uid)
        return entry.flight if entry else None

    def _build_predictor(self, flight: Flight) -> LandingPredictor:
        predictor = LandingPredictor(flight, prediction=self.prediction)
        if len(flight) > 0:
            predictor.build_altitude_profile()
        return predictor

    def _insert(self, uid: str, entry: CachedFlight) -> None:
        with self._lock:
            self._cache[uid] = entry
            self._cache.move_to_end(uid)
            if len(self._cache) > self.max_entries:
                self._evict_oldest()

    # -------------------------------------------------------------------------
    # Updates
    # -------------------------------------------------------------------------

    def refresh(self, uid: str) -> List[FlightPoint]:
        """
        Bring the cached snapshot up to date with the store and swap it in.

        Returns the points the caller has not seen (with derived vectors),
        empty if the flight is unknown or unchanged. After a rebuild every
        point of the flight is returned.
        """
        with self._flight_lock(uid):
            entry = self.get(uid)
            if entry is None:
                return []

            last = entry.flight.last_point()
            new_points = self.store.points_since(uid, last.timestamp if last else None)
            stored = self.store.count_points(uid)
            if stored != len(entry.flight) + len(new_points):
                return self._rebuild(uid, entry, stored)
            if not new_points:
                return []

            updated = entry.flight.copy()
            first_index = len(updated)
            for point in new_points:
                updated.add(point)
            last_index = len(updated) - 1

            predictor = entry.predictor
            predictor.load(updated)
            if predictor.is_ready:
                predictor.update_altitude_profile(first_index, last_index)
            else:
                predictor.build_altitude_profile()

            self._insert(uid, CachedFlight(
                flight=updated,
                predictor=predictor,
                cached_at=time.time(),
                last_access=entry.last_access,
            ))

            logger.debug(f'Refreshed flight {uid} with {len(new_points)} new points')
            # Earlier points carry updated velocity vectors now
            return updated.points[max(first_index - 1, 0):]

    def _rebuild(self, uid: str, entry: CachedFlight, stored: int) -> List[FlightPoint]:
        logger.info(
            f'Flight {uid} has {stored} stored points but {len(entry.flight)} cached, '
            f'rebuilding'
        )
        flight = self.store.load_flight(uid)
        if flight is None:
            self.invalidate(uid)
            return []

        self._insert(uid, CachedFlight(
            flight=flight,
            predictor=self._build_predictor(flight),
            last_access=entry.last_access,
        ))
        return list(flight.points)

    def predict_landing(
        self,
        uid: str,
        velocity_fn: VelocityFunc,
        point: Optional[FlightPoint] = None,
    ) -> Optional[Vector2]:
        """
        Predicted landing position for a flight.

        Uses the last valid point when `point` is not given. Returns None for
        an unknown flight or one without valid points. Raises
        PredictionNotReadyError if no wind model could be built.
        """
        with self._flight_lock(uid):
            entry = self.get(uid)
            if entry is None:
                return None

            point = point or entry.flight.last_valid_point()
            if point is None:
                return None

            entry.predictor.set_velocity_fn(velocity_fn)
            return entry.predictor.calculate_landing(point)

    # -------------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------------

    def invalidate(self, uid: str) -> None:
        with self._lock:
            self._cache.pop(uid, None)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
            self._flight_locks.clear()

    def _evict_oldest(self) -> None:
        """Remove least recently accessed entries until within capacity."""
        while len(self._cache) > self.max_entries:
            uid, _ = self._cache.popitem(last=False)
            self._flight_locks.pop(uid, None)
            logger.debug(f'Evicted flight {uid} from cache')

    def get_stats(self) -> dict:
        """Get cache statistics."""
        with self._lock:
            total = self._hits + self._misses
            return {
                'entries': len(self._cache),
                'max_entries': self.max_entries,
                'hits': self._hits,
                'misses': self._misses,
                'hit_rate': round(self._hits / total, 3) if total else 0.0,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def __contains__(self, uid: str) -> bool:
        with self._lock:
            return uid in self._cache


# Global cache instance
flight_cache = FlightCache()
