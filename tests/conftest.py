"""
Shared fixtures.

Every test gets its own file-backed SQLite database under tmp_path, with
the schema already in place.
"""

from decimal import Decimal

import pytest

from pocket_ledger.audit import AuditLogger
from pocket_ledger.config import DatabaseSettings, get_settings
from pocket_ledger.models import Account
from pocket_ledger.orchestrator import LedgerApp
from pocket_ledger.schema import SchemaManager
from pocket_ledger.services.storage import Database


USER = "user-1"
OTHER_USER = "user-2"


class RecordingAuditLogger(AuditLogger):
    """Keeps every event it logs so tests can inspect the trail."""

    def __init__(self):
        super().__init__()
        self.events = []

    async def log(self, event) -> bool:
        self.events.append(event)
        return await super().log(event)

    def of_type(self, event_type) -> list:
        return [e for e in self.events if e.event_type == event_type]


@pytest.fixture
def db(tmp_path):
    database = Database.open(DatabaseSettings(path=str(tmp_path / "ledger.db")))
    yield database
    database.close()


@pytest.fixture
async def app(db):
    schema = SchemaManager(db)
    await schema.ensure_schema()
    return LedgerApp(db, schema, AuditLogger(), get_settings())


@pytest.fixture
async def recorded_app(db):
    """Like ``app``, but ``app.audit_logger.events`` holds every audit event."""
    audit = RecordingAuditLogger()
    schema = SchemaManager(db, audit)
    await schema.ensure_schema()
    return LedgerApp(db, schema, audit, get_settings())


@pytest.fixture
def open_account(app):
    """Open an account for USER with an optional starting balance."""

    async def _open(name: str, balance="0", user_id: str = USER) -> Account:
        return await app.ledger.open_account(
            Account(user_id=user_id, name=name),
            Decimal(balance),
        )

    return _open
