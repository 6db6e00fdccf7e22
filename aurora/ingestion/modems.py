"""
Authorized modem list - CSV loader and in-memory lookup.

The modem CSV is the source of truth. Expected format:

    IMEI,Organization,Modem Name
    300234060000001,Some University,MDM 001

Organization spaces become dashes and name spaces become underscores.
Names must be unique. A successfully parsed CSV replaces the modems table;
if the CSV is missing or invalid, the last stored table is used instead.

Usage:
    from aurora.ingestion.modems import ModemList

    modems = ModemList()
    modems.load_modems('modems.csv')
    modems.has(300234060000001)
"""

import csv
import logging
from collections import Counter
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from sqlalchemy import delete
from sqlalchemy.orm import Session

from aurora.config import config
from aurora.models import Modem
from aurora.models.base import SessionLocal

logger = logging.getLogger(__name__)

EXPECTED_HEADER = ('imei', 'organization', 'modem name')


class ModemValidationError(Exception):
    """The modem CSV is malformed."""


class ModemLoadError(Exception):
    """No modems could be loaded from either the CSV or the database."""


@dataclass(frozen=True)
class ModemInfo:
    """An authorized modem."""
    imei: int
    org: str
    name: str

    def to_dict(self) -> dict:
        return {'imei': self.imei, 'org': self.org, 'name': self.name}


@dataclass(frozen=True)
class RedactedModem:
    """Modem details safe to expose to clients."""
    partial_imei: str
    org: str
    name: str

    def to_dict(self) -> dict:
        return {'partialImei': self.partial_imei, 'org': self.org, 'name': self.name}


def format_record(record: List[str], index: int) -> ModemInfo:
    """Validate and normalize one CSV row."""
    if len(record) < 3:
        raise ModemValidationError(f'Row index {index} must have 3 columns')

    try:
        imei = int(record[0].strip())
    except ValueError:
        raise ModemValidationError(f'IMEI incorrect for row index {index}, must be a number')

    org = record[1].strip().replace(' ', '-')
    name = record[2].strip().replace(' ', '_')
    if not name:
        raise ModemValidationError(f'Modem name cannot be blank for row index {index}')

    return ModemInfo(imei=imei, org=org, name=name)


def check_unique_names(modems: List[ModemInfo]) -> None:
    counts = Counter(modem.name for modem in modems)
    duplicates = sorted(name for name, count in counts.items() if count > 1)
    if duplicates:
        raise ModemValidationError(
            f'Duplicate modem names are not allowed, detected: {", ".join(duplicates)}'
        )


def read_modem_csv(csv_path: Union[str, Path]) -> List[ModemInfo]:
    """
    Parse and validate the modem CSV.

    Raises ModemValidationError for any format problem, including a
    missing file.
    """
    csv_path = Path(csv_path)
    if not csv_path.exists():
        raise ModemValidationError(f'Modem CSV not found: {csv_path}')

    with open(csv_path, 'r', encoding='utf-8', newline='') as f:
        rows = [row for row in csv.reader(f) if row]

    if not rows:
        raise ModemValidationError('No records loaded from CSV')

    header = tuple(column.strip().lower() for column in rows[0][:3])
    if header != EXPECTED_HEADER:
        raise ModemValidationError('First row must match [IMEI, Organization, Modem Name] format')

    modems = [format_record(row, index) for index, row in enumerate(rows[1:])]
    check_unique_names(modems)
    return modems


class ModemList:
    """
    In-memory modem lookup keyed by IMEI, backed by the modems table.

    Implements the modem registry used by the flight assigner.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        exposed_digits: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.exposed_digits = exposed_digits or config.tracking.exposed_imei_digits
        self._modems: Dict[int, ModemInfo] = {}

    def load_modems(self, csv_path: Optional[Union[str, Path]] = None) -> int:
        """
        Load modems from CSV, falling back to the database.

        Returns count of modems loaded. Raises ModemLoadError when neither
        source yields any modems.
        """
        csv_path = csv_path or config.modems.csv_path
        try:
            if not csv_path:
                raise ModemValidationError('No modem CSV configured')
            modems = read_modem_csv(csv_path)
            self._store(modems)
            logger.info(f'Stored {len(modems)} modem records in database')
        except ModemValidationError as e:
            logger.error(f'Error while loading modems from CSV: {e}')
            logger.warning('Attempting to load modems from the database...')
            modems = self._load_from_db()

        self._modems = {modem.imei: modem for modem in modems}
        logger.info(f'Loaded {len(self._modems)} modems')
        return len(self._modems)

    def _store(self, modems: List[ModemInfo]) -> None:
        """Replace the modems table with the given list."""
        with self.session_factory() as session:
            session.execute(delete(Modem))
            session.add_all(
                Modem(imei=modem.imei, organization=modem.org, name=modem.name)
                for modem in modems
            )
            session.commit()

    def _load_from_db(self) -> List[ModemInfo]:
        with self.session_factory() as session:
            rows = session.query(Modem).all()
            modems = [ModemInfo(imei=row.imei, org=row.organization, name=row.name) for row in rows]

        if not modems:
            raise ModemLoadError('No data loaded from database')
        return modems

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def has(self, imei: int) -> bool:
        return imei in self._modems

    def get(self, imei: int) -> Optional[ModemInfo]:
        return self._modems.get(imei)

    def get_by_name(self, name: str) -> Optional[ModemInfo]:
        return next((m for m in self._modems.values() if m.name == name), None)

    def get_by_org(self, org: str) -> List[ModemInfo]:
        return [m for m in self._modems.values() if m.org == org]

    def get_redacted(self, imei: int) -> Optional[RedactedModem]:
        modem = self.get(imei)
        if modem is None:
            return None
        return RedactedModem(
            partial_imei=str(modem.imei)[-self.exposed_digits:],
            org=modem.org,
            name=modem.name,
        )

    def get_redacted_set(self) -> List[RedactedModem]:
        return [self.get_redacted(imei) for imei in self._modems]

    def __len__(self) -> int:
        return len(self._modems)

    def __contains__(self, imei: int) -> bool:
        return self.has(imei)

    def __str__(self) -> str:
        return '\n'.join(
            f'imei {imei}: {{org: {m.org}, name: {m.name}}}' for imei, m in self._modems.items()
        )
