"""
Tests for startup wiring and configuration.
"""

from decimal import Decimal

import pytest

from pocket_ledger.config import DatabaseSettings, get_settings, validate_all_settings
from pocket_ledger.exceptions import ConnectionError
from pocket_ledger.models import Account
from pocket_ledger.orchestrator import create_app_components

from tests.conftest import USER


@pytest.fixture
def ledger_env(tmp_path, monkeypatch):
    monkeypatch.setenv("LEDGER_DB_PATH", str(tmp_path / "nested" / "ledger.db"))
    monkeypatch.setenv("LEDGER_LOG_JSON_OUTPUT", "false")
    return tmp_path


class TestCreateAppComponents:

    async def test_builds_a_working_app(self, ledger_env):
        app = await create_app_components()
        try:
            assert (ledger_env / "nested" / "ledger.db").exists()
            assert await app.start_session(USER) is True
            cash = await app.ledger.open_account(Account(user_id=USER, name="Cash"), Decimal("20"))
            assert (await app.accounts.require(cash.id, USER)).balance == Decimal("20")
        finally:
            app.close()

    async def test_reopening_keeps_data(self, ledger_env):
        app = await create_app_components()
        cash = await app.ledger.open_account(Account(user_id=USER, name="Cash"), Decimal("20"))
        app.close()

        app = await create_app_components()
        try:
            assert (await app.accounts.require(cash.id, USER)).balance == Decimal("20")
        finally:
            app.close()

    async def test_closed_handle_refuses_work(self, ledger_env):
        app = await create_app_components()
        app.close()
        assert app.database.is_closed
        with pytest.raises(ConnectionError):
            await app.accounts.list_by_user(USER)


class TestSettings:

    def test_database_url_from_path(self, tmp_path):
        settings = DatabaseSettings(path=str(tmp_path / "x.db"))
        assert settings.database_url.startswith("sqlite")

    def test_rejects_non_sqlite_url(self):
        with pytest.raises(ValueError):
            DatabaseSettings(url="postgresql://localhost/ledger")

    def test_log_level_is_normalised(self, monkeypatch):
        monkeypatch.setenv("LEDGER_LOG_LEVEL", "debug")
        assert get_settings().logging.level == "DEBUG"

    def test_validate_all_settings(self):
        results = validate_all_settings()
        assert results["database"] and results["logging"] and results["app"]
