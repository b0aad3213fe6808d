"""
Main Orchestrator for Pocket Ledger

Wires the components together and owns their lifecycle:

1. Configure logging
2. Open the database (once per process)
3. Bring the schema up to date (fatal on failure)
4. Build the stores, the ledger and the aggregation engine on the same
   database handle
5. Close the handle once at shutdown

Nothing in the core opens its own connection; everything receives the
handle created here.
"""

from typing import Optional

import structlog

from pocket_ledger.aggregation import AggregationEngine
from pocket_ledger.audit import AuditLogger, configure_logging
from pocket_ledger.config import Settings, get_settings
from pocket_ledger.ledger import TransactionLedger
from pocket_ledger.schema import SchemaManager
from pocket_ledger.services.storage import (
    AccountStore,
    BudgetStore,
    CategoryStore,
    Database,
    GoalStore,
    UserStore,
)
from pocket_ledger.validation import LedgerValidator


logger = structlog.get_logger(__name__)


class LedgerApp:
    """Every core component, sharing one database handle."""

    def __init__(
        self,
        database: Database,
        schema: SchemaManager,
        audit_logger: AuditLogger,
        settings: Settings,
    ):
        validator = LedgerValidator()

        self.database = database
        self.schema = schema
        self.audit_logger = audit_logger
        self.settings = settings

        self.categories = CategoryStore(database, audit_logger, validator)
        self.accounts = AccountStore(database, audit_logger, validator)
        self.budgets = BudgetStore(database, audit_logger, validator)
        self.goals = GoalStore(database, audit_logger, validator)
        self.users = UserStore(database)

        self.ledger = TransactionLedger(
            database,
            self.accounts,
            self.categories,
            self.goals,
            audit_logger=audit_logger,
            validator=validator,
            settings=settings.app,
        )
        self.aggregation = AggregationEngine(database, self.ledger, self.accounts, self.budgets)

    async def start_session(self, user_id: str) -> bool:
        """
        Prepare the database for a signed-in user.

        Seeds the starter categories on the first run (when enabled).
        Returns True if seeding happened.
        """
        if not self.settings.app.seed_defaults:
            return False
        return await self.schema.seed_defaults_if_first_run(user_id)

    def close(self) -> None:
        self.database.close()


async def create_app_components(settings: Optional[Settings] = None) -> LedgerApp:
    """
    Factory function to create all application components.

    Raises:
        ConnectionError: If the database cannot be opened
        FatalStartupError: If the schema cannot be brought up to date.
                           The database handle is closed before raising.
    """
    settings = settings or get_settings()
    configure_logging(settings.logging)

    database = Database.open(settings.database)
    audit_logger = AuditLogger()
    schema = SchemaManager(database, audit_logger)
    try:
        await schema.ensure_schema()
    except Exception:
        database.close()
        raise

    logger.info(
        "app_components_ready",
        environment=settings.app.app_environment,
        schema_version=schema.schema_version(),
    )
    return LedgerApp(database, schema, audit_logger, settings)
