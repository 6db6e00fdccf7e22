"""Tests for the authorized modem list."""

from __future__ import annotations

import pytest

from aurora.ingestion.modems import (
    ModemList,
    ModemLoadError,
    ModemValidationError,
    read_modem_csv,
)

from tests.conftest import IMEI, OTHER_IMEI


class TestReadCsv:
    def test_normalizes_names(self, modem_csv):
        modems = read_modem_csv(modem_csv)
        assert modems[0].imei == IMEI
        assert modems[0].org == 'Some-University'
        assert modems[0].name == 'MDM_001'

    def test_bad_header(self, tmp_path):
        path = tmp_path / 'bad.csv'
        path.write_text('id,org,name\n1,a,b\n')
        with pytest.raises(ModemValidationError):
            read_modem_csv(path)

    def test_non_numeric_imei(self, tmp_path):
        path = tmp_path / 'bad.csv'
        path.write_text('IMEI,Organization,Modem Name\nabc,Org,Name\n')
        with pytest.raises(ModemValidationError):
            read_modem_csv(path)

    def test_blank_name(self, tmp_path):
        path = tmp_path / 'bad.csv'
        path.write_text('IMEI,Organization,Modem Name\n123,Org, \n')
        with pytest.raises(ModemValidationError):
            read_modem_csv(path)

    def test_duplicate_names(self, tmp_path):
        path = tmp_path / 'bad.csv'
        path.write_text('IMEI,Organization,Modem Name\n1,Org,Same\n2,Org,Same\n')
        with pytest.raises(ModemValidationError, match='Same'):
            read_modem_csv(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ModemValidationError):
            read_modem_csv(tmp_path / 'missing.csv')


class TestModemList:
    def test_lookup(self, modem_list):
        assert modem_list.has(IMEI)
        assert not modem_list.has(42)
        assert modem_list.get(OTHER_IMEI).name == 'MDM002'
        assert modem_list.get_by_name('MDM_001').imei == IMEI
        assert modem_list.get_by_name('nope') is None
        assert [m.imei for m in modem_list.get_by_org('Other-Org')] == [OTHER_IMEI]

    def test_redacted(self, modem_list):
        redacted = modem_list.get_redacted(IMEI)
        assert redacted.partial_imei == str(IMEI)[-5:]
        assert redacted.to_dict() == {'partialImei': '00001', 'org': 'Some-University', 'name': 'MDM_001'}
        assert len(modem_list.get_redacted_set()) == 2
        assert modem_list.get_redacted(42) is None

    def test_falls_back_to_database(self, session_factory, modem_list, tmp_path):
        bad = tmp_path / 'bad.csv'
        bad.write_text('nonsense\n')

        fresh = ModemList(session_factory=session_factory)
        assert fresh.load_modems(bad) == 2
        assert fresh.has(IMEI)

    def test_empty_database_fallback_fails(self, session_factory, tmp_path):
        with pytest.raises(ModemLoadError):
            ModemList(session_factory=session_factory).load_modems(tmp_path / 'missing.csv')

    def test_reload_replaces_table(self, session_factory, modem_list, tmp_path):
        path = tmp_path / 'new.csv'
        path.write_text(f'IMEI,Organization,Modem Name\n{OTHER_IMEI},Org,Solo\n')
        modem_list.load_modems(path)

        fresh = ModemList(session_factory=session_factory)
        fresh.load_modems(tmp_path / 'missing.csv')
        assert len(fresh) == 1
        assert fresh.get(OTHER_IMEI).name == 'Solo'
