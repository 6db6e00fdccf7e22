"""Shared fixtures: in-memory database, fake flight store, test client."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Dict, List, Optional, Tuple

import pytest

from aurora.config import DatabaseConfig
from aurora.models import create_db_engine, init_db, make_session_factory
from aurora.tracking.assigner import DuplicatePointError
from aurora.tracking.flight import FlightPoint

IMEI = 300234060000001
OTHER_IMEI = 300234060000002


def make_point(timestamp: int, **overrides) -> FlightPoint:
    """A valid point with sensible defaults."""
    fields = {
        'timestamp': timestamp,
        'latitude': 45.0,
        'longitude': -75.0,
        'altitude': 1000.0,
        'vertical_velocity': 5.0,
        'ground_speed': 10.0,
        'satellites': 8,
        'input_pins': 0,
        'output_pins': 0,
    }
    fields.update(overrides)
    return FlightPoint(**fields)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def payload(imei=IMEI, dt='2024-01-01T12:00:00Z', **overrides) -> dict:
    """Point payload in the dispatch server wire format."""
    body = {
        'imei': str(imei),
        'datetime': dt,
        'latitude': 45.0,
        'longitude': -75.0,
        'altitude': 1000.0,
        'vertical_velocity': 5.0,
        'ground_speed': 10.0,
        'satellites': 8,
        'input_pins': 0,
        'output_pins': 0,
    }
    body.update(overrides)
    return body


class FakeModemRegistry:
    def __init__(self, imeis=(IMEI,)):
        self.imeis = set(imeis)

    def has(self, imei: int) -> bool:
        return imei in self.imeis


class FakeFlightStore:
    """Dictionary-backed flight store with the SQL store's uniqueness rules."""

    def __init__(self):
        self.registry: Dict[str, Tuple[int, date]] = {}
        self.points: Dict[str, List[FlightPoint]] = {}
        self._next = 0

    def find_by_identity(self, imei: int, start_date: date) -> Optional[str]:
        for uid, identity in self.registry.items():
            if identity == (imei, start_date):
                return uid
        return None

    def find_recent_active(self, imei: int, since_timestamp: int) -> Optional[str]:
        best = None
        for uid, (flight_imei, _) in self.registry.items():
            if flight_imei != imei:
                continue
            for point in self.points[uid]:
                if point.timestamp >= since_timestamp and (best is None or point.timestamp > best[1]):
                    best = (uid, point.timestamp)
        return best[0] if best else None

    def create_flight(self, imei: int, start_date: date) -> str:
        self._next += 1
        uid = f'flight-{self._next}'
        self.registry[uid] = (imei, start_date)
        self.points[uid] = []
        return uid

    def persist(self, uid: str, point: FlightPoint) -> None:
        if any(p.timestamp == point.timestamp for p in self.points[uid]):
            raise DuplicatePointError(f'{uid} @ {point.timestamp}')
        self.points[uid].append(point)


@pytest.fixture
def fake_store():
    return FakeFlightStore()


@pytest.fixture
def fake_modems():
    return FakeModemRegistry()


@pytest.fixture
def session_factory():
    """Session factory bound to a fresh in-memory SQLite database."""
    engine = create_db_engine(DatabaseConfig(url='sqlite://'))
    init_db(bind=engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def sql_store(session_factory):
    from aurora.ingestion.flight_store import SqlFlightStore
    return SqlFlightStore(session_factory=session_factory, min_satellites=5)


@pytest.fixture
def modem_csv(tmp_path):
    path = tmp_path / 'modems.csv'
    path.write_text(
        'IMEI,Organization,Modem Name\n'
        f'{IMEI},Some University,MDM 001\n'
        f'{OTHER_IMEI},Other Org,MDM002\n'
    )
    return path


@pytest.fixture
def modem_list(session_factory, modem_csv):
    from aurora.ingestion.modems import ModemList
    modems = ModemList(session_factory=session_factory, exposed_digits=5)
    modems.load_modems(modem_csv)
    return modems


class StubElevation:
    def __init__(self, value=None):
        self.value = value
        self.calls = []

    def request(self, latitude, longitude):
        self.calls.append((latitude, longitude))
        return self.value


@pytest.fixture
def app(sql_store, modem_list):
    from aurora.app import create_app
    from aurora.cache import FlightCache

    cache = FlightCache(store=sql_store, max_entries=10)
    application = create_app(
        store=sql_store,
        modems=modem_list,
        cache=cache,
        elevation=StubElevation(),
        clock=lambda: utc(2024, 1, 1, 12, 5),
        init_database=False,
    )
    application.config['TESTING'] = True
    return application


@pytest.fixture
def client(app):
    return app.test_client()
